# swell/metrics.py
from __future__ import annotations
import io, re
from pathlib import Path
from typing import Iterable, List, Optional, Tuple

import pandas as pd

from swell.model import Resources

METRICS_RE = re.compile(r"^job_metrics_(\d+)\.out$")
ACCOUNTING_FIELDS = ("JobID", "JobName", "State", "ExitCode", "Elapsed",
                     "MaxRSS", "ReqMem", "AllocCPUS", "NodeList")


# --------------------------
# metrics file naming
# --------------------------
def next_metrics_suffix(log_dir: str | Path) -> int:
    used = []
    for p in Path(log_dir).glob("job_metrics_*.out"):
        m = METRICS_RE.match(p.name)
        if m:
            used.append(int(m.group(1)))
    return max(used, default=0) + 1


def reserve_metrics_file(log_dir: str | Path, *, dry_run: bool = False) -> Tuple[int, Path]:
    """Pick the next unused `job_metrics_<N>.out` and claim it.

    The claim is an exclusive create, so two invocations racing on the same
    log directory still end up with different files.
    """
    log_dir = Path(log_dir)
    n = next_metrics_suffix(log_dir)
    while True:
        path = log_dir / f"job_metrics_{n}.out"
        if dry_run:
            return n, path
        try:
            with open(path, "x"):
                pass
            return n, path
        except FileExistsError:
            n += 1


# --------------------------
# terminal accounting job
# --------------------------
class MetricsCollector:
    RESOURCES = {"time": "00:05:00", "mem": "256M", "cpus": 1}

    def __init__(self, graph, metrics_file: str | Path, run_count: int):
        self.graph = graph
        self.metrics_file = Path(metrics_file)
        self.run_count = run_count

    @property
    def job_name(self) -> str:
        return f"output_job_metrics_{self.run_count}"

    def command(self, job_ids: Iterable[str]) -> str:
        return self.graph.driver.accounting_command(list(job_ids), str(self.metrics_file))

    def collect(self, job_ids: Iterable[str]):
        """Last node of the run; depends on every id submitted before it."""
        ids = [j for j in job_ids if j]
        if not ids:
            return None
        return self.graph.add_job(
            self.job_name,
            self.command(ids),
            Resources(**self.RESOURCES),
            depends_on=ids,
            after="any",
            strict=False,
        )


# --------------------------
# reading accounting rows back
# --------------------------
def parse_sacct(text: str) -> pd.DataFrame:
    """`sacct --parsable2` output (possibly several appended blocks) -> rows."""
    lines = [ln for ln in text.splitlines() if ln.strip()]
    if not lines:
        return pd.DataFrame(columns=list(ACCOUNTING_FIELDS))
    header = lines[0]
    body = [ln for ln in lines[1:] if ln != header]
    df = pd.read_csv(io.StringIO("\n".join([header, *body])), sep="|", dtype=str, keep_default_na=False)
    return df


def elapsed_seconds(value: str) -> Optional[int]:
    """'1-02:03:04', '02:03:04' or '03:04' -> seconds."""
    if not value:
        return None
    days = 0
    if "-" in value:
        d, value = value.split("-", 1)
        days = int(d)
    parts = [int(float(p)) for p in value.split(":")]
    while len(parts) < 3:
        parts.insert(0, 0)
    h, m, s = parts[-3:]
    return days * 86400 + h * 3600 + m * 60 + s


def rss_mb(value: str) -> Optional[float]:
    if not value:
        return None
    units = {"K": 1 / 1024, "M": 1.0, "G": 1024.0, "T": 1024.0 * 1024}
    v = value.strip().upper()
    if v[-1] in units:
        return float(v[:-1]) * units[v[-1]]
    return float(v) / (1024 * 1024)


def summarise_metrics(path: str | Path) -> pd.DataFrame:
    df = parse_sacct(Path(path).read_text())
    if df.empty:
        return df
    if "Elapsed" in df:
        df["elapsed_sec"] = pd.to_numeric(df["Elapsed"].map(elapsed_seconds))
    if "MaxRSS" in df:
        df["max_rss_mb"] = pd.to_numeric(df["MaxRSS"].map(rss_mb))
    return df


def summary_by_state(df: pd.DataFrame) -> pd.DataFrame:
    if df.empty or "State" not in df:
        return pd.DataFrame()
    agg = {"JobID": "count"}
    if "elapsed_sec" in df:
        agg["elapsed_sec"] = "sum"
    if "max_rss_mb" in df:
        agg["max_rss_mb"] = "max"
    state = df["State"].str.split().str[0]
    return df.assign(State=state).groupby("State").agg(agg).rename(columns={"JobID": "jobs"})


def accounting_rows(text: str) -> List[dict]:
    return parse_sacct(text).to_dict("records")
