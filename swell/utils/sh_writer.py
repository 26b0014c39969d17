# swell/utils/sh_writer.py
from __future__ import annotations
from pathlib import Path
from typing import Iterable, Sequence
import shlex, datetime


def _line(x) -> str:
    # token list -> quoted line, string -> as is
    return shlex.join(x) if isinstance(x, (list, tuple)) else str(x)


def module_lines(modules: Iterable[str]) -> list[str]:
    mods = [m for m in modules if m]
    return [f"module load {' '.join(mods)}"] if mods else []


def write_script_from_cmds(cmds: Iterable[Sequence[str] | str],
                           out_path: str | Path,
                           *,
                           directives: Iterable[str] = (),
                           modules: Iterable[str] = (),
                           strict: bool = True) -> Path:
    """Write an executable job script.

    Scheduler directives have to sit directly under the shebang, so the layout
    is: shebang, directives, shell options, module loads, body.
    """
    out = Path(out_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    header = ["#!/usr/bin/env bash", *directives]
    if strict:
        header += [
            "set -euo pipefail",
            "trap 'echo \"[ERR] $(date +%F-%T) $0:$LINENO\" >&2' ERR",
        ]
    else:
        header.append("set -uo pipefail")
    header.append(f"# generated: {datetime.datetime.now().isoformat(timespec='seconds')}")
    body = [_line(c) for c in cmds]
    out.write_text("\n".join([*header, *module_lines(modules), "", *body]) + "\n")
    out.chmod(0o755)
    return out
