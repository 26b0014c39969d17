# swell/cli.py
from __future__ import annotations
import argparse, sys
from pathlib import Path

from swell.config import parse_flag
from swell.errors import SwellError
from swell.executor import DRIVERS
from swell.metrics import summarise_metrics, summary_by_state
from swell.utils.log import PREFIX


def yes_no(value: str) -> bool:
    try:
        return parse_flag(value)
    except ValueError as e:
        raise argparse.ArgumentTypeError(str(e)) from e


def build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        prog="swell",
        description="plan and submit per-patient pipeline jobs to a batch scheduler",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    sub = p.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="plan and submit one pipeline stage",
                         formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    run.add_argument("-t", "--tool", dest="tool_config", required=True, help="tool config (YAML)")
    run.add_argument("-d", "--data", dest="data_config", required=True, help="sample config (YAML)")
    run.add_argument("-o", "--out-dir", dest="out_dir", default=None,
                     help="output directory (overrides output_dir in the tool config)")
    run.add_argument("--resume", type=yes_no, default=None, metavar="Y/N",
                     help="skip steps whose checksum file already exists (default: tool config)")
    run.add_argument("--dry-run", dest="dry_run", type=yes_no, default=None, metavar="Y/N",
                     help="write job scripts but submit nothing (default: tool config)")
    run.add_argument("--depends-on", dest="depends_on", default=None, metavar="JOBID",
                     help="upstream job every sample chain waits for")
    run.add_argument("-c", "--cluster", choices=sorted(DRIVERS), default=None,
                     help="scheduler backend (default: hpc_driver in the tool config)")
    run.add_argument("--remove", action="store_true", default=False,
                     help="remove intermediates once final outputs are verified")
    run.add_argument("--quiet", action="store_true", help="log to file only")

    met = sub.add_parser("metrics", help="summarise a job_metrics_<N>.out file")
    met.add_argument("metrics_file", help="metrics file written by a run")
    met.add_argument("--all", dest="show_all", action="store_true", help="print every accounting row")
    return p


def _run(args) -> int:
    from swell.workflow import Workflow

    wf = Workflow(
        config_path=Path(args.tool_config),
        samples_path=Path(args.data_config),
        output_dir=args.out_dir,
        resume=args.resume,
        dry_run=args.dry_run,
        remove=args.remove or None,
        cluster=args.cluster,
        depends_on=args.depends_on,
        quiet=args.quiet,
    )
    summary = wf.run()
    if summary.failures:
        print(f"{PREFIX} {len(summary.failures)} branch(es) failed to submit; re-run with --resume Y once fixed")
    return 0


def _metrics(args) -> int:
    df = summarise_metrics(args.metrics_file)
    if df.empty:
        print(f"{PREFIX} no accounting rows in {args.metrics_file}")
        return 0
    print(summary_by_state(df).to_string())
    if args.show_all:
        print()
        print(df.to_string(index=False))
    return 0


def main(argv=None) -> int:
    args = build_argparser().parse_args(argv)
    try:
        if args.command == "run":
            return _run(args)
        return _metrics(args)
    except SwellError as e:
        print(f"{PREFIX} ERROR: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
