# swell/executor.py
from __future__ import annotations
import datetime, os, re, shlex, subprocess
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from swell.errors import SubmissionError
from swell.metrics import ACCOUNTING_FIELDS, accounting_rows
from swell.model import Resources


def _run(args: Sequence[str], what: str) -> str:
    try:
        proc = subprocess.run(list(args), capture_output=True, text=True, check=True)
    except FileNotFoundError as e:
        raise SubmissionError(f"{what}: command not found ({args[0]})") from e
    except subprocess.CalledProcessError as e:
        err = (e.stderr or e.stdout or "").strip()
        raise SubmissionError(f"{what} failed with code {e.returncode}: {err}") from e
    return proc.stdout


class SchedulerDriver:
    """Base driver.

    `submit` is the only entry point the job graph uses. Under dry-run it
    hands back placeholder ids and never reaches `_submit`, so dependency
    strings stay well formed without a backend.
    """
    NAME = "base"
    PLACEHOLDER_PREFIX = "dryrun_"

    def __init__(self, log_dir: str | Path):
        self.log_dir = Path(log_dir)
        self._placeholders = 0

    def submit(self, script_path: str | Path, dependencies: Iterable[str] = (),
               dry_run: bool = False, after: str = "ok") -> str:
        if after not in ("ok", "any"):
            raise ValueError(f"after must be 'ok' or 'any', got {after!r}")
        deps = [d for d in dependencies if d]
        if dry_run:
            return self.placeholder()
        return self._submit(Path(script_path), deps, after)

    def placeholder(self) -> str:
        self._placeholders += 1
        return f"{self.PLACEHOLDER_PREFIX}{self._placeholders}"

    def _submit(self, script_path: Path, deps: List[str], after: str) -> str:
        raise NotImplementedError

    def script_header(self, name: str, resources: Resources) -> List[str]:
        return []

    def accounting_command(self, job_ids: List[str], outfile: str) -> str:
        raise NotImplementedError

    def query_accounting(self, job_ids: List[str]) -> List[Dict[str, str]]:
        raise NotImplementedError

    def log_paths(self, name: str) -> tuple[Path, Path]:
        return (self.log_dir / f"{name}.stdout", self.log_dir / f"{name}.stderr")


# ---------------------------------------------------------------------
# slurm
# ---------------------------------------------------------------------
class SlurmDriver(SchedulerDriver):
    NAME = "slurm"

    def __init__(self, log_dir: str | Path, *, partition: Optional[str] = None):
        super().__init__(log_dir)
        self.partition = partition

    def script_header(self, name: str, resources: Resources) -> List[str]:
        out, err = self.log_paths(name)
        lines = [
            f"#SBATCH --job-name={name}",
            f"#SBATCH -t {resources.time}",
            f"#SBATCH --mem={resources.mem}",
            f"#SBATCH -c {resources.cpus}",
            f"#SBATCH -o {out}",
            f"#SBATCH -e {err}",
        ]
        if self.partition:
            lines.append(f"#SBATCH -p {self.partition}")
        return lines

    def dependency_args(self, deps: List[str], after: str) -> List[str]:
        if not deps:
            return []
        return [f"--dependency=after{after}:{':'.join(deps)}", "--kill-on-invalid-dep=yes"]

    def _submit(self, script_path: Path, deps: List[str], after: str) -> str:
        args = ["sbatch", "--parsable", *self.dependency_args(deps, after), str(script_path)]
        out = _run(args, f"sbatch {script_path.name}")
        jid = out.strip().split(";")[0]
        if not jid.isdigit():
            raise SubmissionError(f"sbatch {script_path.name}: unexpected reply {out.strip()!r}")
        return jid

    def accounting_command(self, job_ids: List[str], outfile: str) -> str:
        return (
            f"sacct --parsable2 --format={','.join(ACCOUNTING_FIELDS)} "
            f"-j {','.join(job_ids)} >> {shlex.quote(outfile)}"
        )

    def query_accounting(self, job_ids: List[str]) -> List[Dict[str, str]]:
        out = _run(["sacct", "--parsable2", f"--format={','.join(ACCOUNTING_FIELDS)}",
                    "-j", ",".join(job_ids)], "sacct")
        return accounting_rows(out)


# ---------------------------------------------------------------------
# SGE (qsub)
# ---------------------------------------------------------------------
def parse_qacct(text: str) -> List[Dict[str, str]]:
    rows: List[Dict[str, str]] = []
    cur: Dict[str, str] = {}
    for line in text.splitlines():
        if line.startswith("====="):
            if cur:
                rows.append(cur)
            cur = {}
            continue
        parts = line.split(None, 1)
        if len(parts) == 2:
            cur[parts[0]] = parts[1].strip()
    if cur:
        rows.append(cur)
    return rows


class SunGridDriver(SchedulerDriver):
    """qsub -hold_jid only waits for prerequisites to finish, not to succeed."""
    NAME = "sge"

    def __init__(self, log_dir: str | Path, *, queue: Optional[str] = None):
        super().__init__(log_dir)
        self.queue = queue

    def script_header(self, name: str, resources: Resources) -> List[str]:
        out, err = self.log_paths(name)
        lines = [
            f"#$ -N {name}",
            f"#$ -o {out}",
            f"#$ -e {err}",
            f"#$ -pe smp {resources.cpus}",
            f"#$ -l h_vmem={resources.mem},h_rt={resources.time}",
            "#$ -V",
            "#$ -cwd",
        ]
        if self.queue:
            lines.append(f"#$ -q {self.queue}")
        return lines

    def _submit(self, script_path: Path, deps: List[str], after: str) -> str:
        args = ["qsub", "-terse"]
        if deps:
            args += ["-hold_jid", ",".join(deps)]
        args.append(str(script_path))
        out = _run(args, f"qsub {script_path.name}")
        jid = next((p for p in reversed(out.split()) if p.split(".")[0].isdigit()), None)
        if jid is None:
            raise SubmissionError(f"qsub {script_path.name}: unexpected reply {out.strip()!r}")
        return jid.split(".")[0]

    def accounting_command(self, job_ids: List[str], outfile: str) -> str:
        return (
            f"for jid in {' '.join(job_ids)}; do qacct -j $jid; done "
            f">> {shlex.quote(outfile)} 2>&1"
        )

    def query_accounting(self, job_ids: List[str]) -> List[Dict[str, str]]:
        rows: List[Dict[str, str]] = []
        for jid in job_ids:
            rows += parse_qacct(_run(["qacct", "-j", jid], "qacct"))
        return rows


# ---------------------------------------------------------------------
# local bash
# ---------------------------------------------------------------------
def _hms(seconds: float) -> str:
    s = int(seconds)
    return f"{s // 3600:02d}:{s % 3600 // 60:02d}:{s % 60:02d}"


class LocalDriver(SchedulerDriver):
    """Runs each script with bash right away. Submission order is already a
    topological order, so a dependency has finished by the time its
    dependents are handed in."""
    NAME = "local"
    LEDGER_FIELDS = ("JobID", "JobName", "State", "ExitCode", "Elapsed")

    def __init__(self, log_dir: str | Path):
        super().__init__(log_dir)
        self.states: Dict[str, str] = {}
        # continue numbering after earlier invocations that share this ledger
        self._count = len(accounting_rows(self.ledger.read_text())) if self.ledger.exists() else 0

    @property
    def ledger(self) -> Path:
        return self.log_dir / "local_accounting.txt"

    def _record(self, jid: str, name: str, state: str, code: int, elapsed: float):
        new = not self.ledger.exists()
        with open(self.ledger, "a") as fh:
            if new:
                fh.write("|".join(self.LEDGER_FIELDS) + "\n")
            fh.write("|".join([jid, name, state, f"{code}:0", _hms(elapsed)]) + "\n")
        self.states[jid] = state

    def state_of(self, jid: str) -> str:
        """State of a job run by this driver, or by an earlier stage sharing the
        ledger. Anything else ran to completion before this process started."""
        if jid in self.states:
            return self.states[jid]
        if self.ledger.exists():
            for row in accounting_rows(self.ledger.read_text()):
                if row["JobID"] == jid:
                    return row["State"]
        return "COMPLETED"

    def _submit(self, script_path: Path, deps: List[str], after: str) -> str:
        self._count += 1
        jid = f"local_{self._count}"
        name = script_path.stem

        if after == "ok" and any(self.state_of(d) != "COMPLETED" for d in deps):
            self._record(jid, name, "CANCELLED", 0, 0)
            return jid

        stdout_path, stderr_path = self.log_paths(name)
        start = datetime.datetime.now()
        with open(stdout_path, "w") as out, open(stderr_path, "w") as err:
            process = subprocess.Popen(["bash", str(script_path)], stdout=out, stderr=err,
                                       env={**os.environ, "SWELL_JOB_ID": jid})
            ret = process.wait()
        elapsed = (datetime.datetime.now() - start).total_seconds()
        self._record(jid, name, "COMPLETED" if ret == 0 else "FAILED", ret, elapsed)
        return jid

    def accounting_command(self, job_ids: List[str], outfile: str) -> str:
        ledger = shlex.quote(str(self.ledger))
        pattern = "|".join(re.escape(j) for j in job_ids)
        return (
            f"{{ head -n 1 {ledger}; grep -E '^({pattern})\\|' {ledger}; }} "
            f">> {shlex.quote(outfile)}"
        )

    def query_accounting(self, job_ids: List[str]) -> List[Dict[str, str]]:
        if not self.ledger.exists():
            return []
        wanted = set(job_ids)
        return [r for r in accounting_rows(self.ledger.read_text()) if r["JobID"] in wanted]


# ---------------------------------------------------------------------
# dry run
# ---------------------------------------------------------------------
class DryRunDriver(SchedulerDriver):
    NAME = "dry"

    def _submit(self, script_path: Path, deps: List[str], after: str) -> str:
        return self.placeholder()

    def accounting_command(self, job_ids: List[str], outfile: str) -> str:
        return f"echo {shlex.quote('dry run; no accounting for ' + ' '.join(job_ids))} >> {shlex.quote(outfile)}"

    def query_accounting(self, job_ids: List[str]) -> List[Dict[str, str]]:
        return []


DRIVERS = {
    "slurm": SlurmDriver,
    "sge": SunGridDriver,
    "local": LocalDriver,
    "dry": DryRunDriver,
}


def get_driver(name: str, log_dir: str | Path, *, queue: Optional[str] = None) -> SchedulerDriver:
    name = name.lower()
    if name not in DRIVERS:
        raise KeyError(f"Unknown scheduler driver: {name}")
    if name == "slurm":
        return SlurmDriver(log_dir, partition=queue)
    if name == "sge":
        return SunGridDriver(log_dir, queue=queue)
    return DRIVERS[name](log_dir)
