# swell/emit_config.py
"""Downstream sample config listing the final artifacts of a run.

Runs as the last-but-one job of a run:
    python -m swell.emit_config --manifest logs/output_manifest.json --output output_config.yaml
"""
from __future__ import annotations
import argparse, json, sys
from pathlib import Path
from typing import Any, Dict

import pyaml

from swell.utils.log import RunLog


def write_manifest(path: str | Path, finals: Dict[str, Dict[str, Dict[str, str]]]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as handle:
        json.dump(finals, handle, indent=4)
    return path


def collect_existing(finals: Dict[str, Dict[str, Dict[str, str]]], log: RunLog) -> Dict[str, Any]:
    """Keep only artifacts that exist and are non-empty; warn about the rest."""
    out: Dict[str, Any] = {}
    for pid, roles in finals.items():
        for role, samples in roles.items():
            for sid, artifact in samples.items():
                p = Path(artifact)
                if p.is_file() and p.stat().st_size > 0:
                    out.setdefault(pid, {}).setdefault(role, {})[sid] = str(p)
                else:
                    log.warn(f"{pid}/{sid}: final output {artifact} is missing; left out of config")
    return out


def emit_config(manifest: str | Path, output: str | Path, log: RunLog | None = None) -> Dict[str, Any]:
    log = log or RunLog()
    finals = json.loads(Path(manifest).read_text())
    data = collect_existing(finals, log)
    Path(output).write_text(pyaml.dump(data))
    log.echo(f"wrote {output} ({sum(len(s) for r in data.values() for s in r.values())} samples)")
    return data


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="write the downstream sample config for a finished run",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--manifest", required=True, help="output_manifest.json written at planning time")
    p.add_argument("--output", required=True, help="YAML file to write")
    return p


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    emit_config(args.manifest, args.output)
    return 0


if __name__ == "__main__":
    sys.exit(main())
