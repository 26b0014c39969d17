# swell/context.py
from __future__ import annotations
import re, shutil, time
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Tuple

from swell.errors import DirectoryError
from swell.metrics import reserve_metrics_file

RUN_PREFIX = "run_"
# dry runs get their own prefix so resume never picks them up
DRY_RUN_PREFIX = "dryrun_"
RUN_DIR_RE = re.compile(r"^run_\d{8}_\d{6}(_\d+)?$")


def _mkdir(path: Path) -> Path:
    try:
        path.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        raise DirectoryError(f"cannot create directory {path}: {e.strerror or e}") from e
    if not path.is_dir():
        raise DirectoryError(f"cannot create directory {path}: not a directory")
    return path


def latest_run_dir(output_root: Path) -> Optional[Path]:
    if not output_root.is_dir():
        return None
    runs = sorted(p for p in output_root.iterdir() if p.is_dir() and RUN_DIR_RE.match(p.name))
    return runs[-1] if runs else None


def _new_run_dir(output_root: Path, now: Optional[float], prefix: str = RUN_PREFIX) -> Path:
    stamp = time.strftime("%Y%m%d_%H%M%S", time.localtime(now))
    candidate = output_root / f"{prefix}{stamp}"
    n = 1
    while candidate.exists():
        n += 1
        candidate = output_root / f"{prefix}{stamp}_{n}"
    return candidate


@dataclass(frozen=True)
class RunContext:
    """Directory layout and global switches of one invocation."""
    output_root: Path
    output_dir: Path
    log_dir: Path
    tmp_dir: Path
    resume: bool
    dry_run: bool
    delete_intermediates: bool
    run_count: int
    metrics_file: Path
    resumed_from: Optional[Path] = None

    @classmethod
    def create(cls, output_root: str | Path, *, resume: bool = False, dry_run: bool = False,
               delete_intermediates: bool = False, now: Optional[float] = None) -> "RunContext":
        root = Path(output_root).expanduser().resolve()
        _mkdir(root)

        previous = latest_run_dir(root) if resume else None
        run_dir = previous or _new_run_dir(root, now, DRY_RUN_PREFIX if dry_run else RUN_PREFIX)
        _mkdir(run_dir)
        log_dir = _mkdir(run_dir / "logs")
        tmp_dir = _mkdir(run_dir / "TEMP")

        try:
            run_count, metrics_file = reserve_metrics_file(log_dir, dry_run=dry_run)
        except OSError as e:
            raise DirectoryError(f"cannot create metrics file in {log_dir}: {e}") from e

        return cls(
            output_root=root,
            output_dir=run_dir,
            log_dir=log_dir,
            tmp_dir=tmp_dir,
            resume=resume,
            dry_run=dry_run,
            delete_intermediates=delete_intermediates,
            run_count=run_count,
            metrics_file=metrics_file,
            resumed_from=previous,
        )

    def as_triple(self) -> Tuple[bool, Path, Path]:
        return self.resume, self.output_dir, self.log_dir

    # --------------------------
    # per-patient/sample layout
    # --------------------------
    def run_log(self, project: str) -> Path:
        if self.dry_run:
            return self.log_dir / f"run_{project}_pipeline_dryrun.log"
        return self.log_dir / f"run_{project}_pipeline_{self.run_count}.log"

    def patient_dir(self, patient_id: str) -> Path:
        return self.output_dir / patient_id

    def sample_dir(self, patient_id: str, sample_id: str) -> Path:
        return self.patient_dir(patient_id) / sample_id

    def input_link_dir(self, patient_id: str, sample_id: str) -> Path:
        return self.patient_dir(patient_id) / "input_links" / sample_id

    def patient_tmp(self, patient_id: str) -> Path:
        return self.tmp_dir / patient_id

    @property
    def link_dir(self) -> Path:
        return self.output_root / "final_links"

    def final_link_dir(self, patient_id: str) -> Path:
        return self.link_dir / patient_id

    @property
    def output_config(self) -> Path:
        return self.output_dir / "output_config.yaml"

    def ensure(self, path: Path) -> Path:
        return _mkdir(path)

    def discard(self) -> None:
        """Remove a run directory this invocation created; reused ones are kept."""
        if self.resumed_from is None:
            try:
                shutil.rmtree(self.output_dir)
            except OSError as e:
                raise DirectoryError(f"cannot remove aborted run directory {self.output_dir}: {e}") from e
