# swell/tasks/builder.py
from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from swell.tasks.loader import load_task_class
from swell.tasks.utils import checksum_lines, link_lines


@dataclass(frozen=True)
class StepParams:
    """Everything one step invocation is rendered from."""
    sample_id: str
    workdir: str
    inputs: Mapping[str, Any]
    params: Mapping[str, Any] = field(default_factory=dict)
    threads: int = 1
    tmp_dir: Optional[str] = None
    link_dir: Optional[str] = None     # final step only


def declared_outputs(step_kind: str, workdir: str, sample_id: str) -> Dict[str, str]:
    return load_task_class(step_kind).declare_outputs(workdir, sample_id)


def render(step_kind: str, params: StepParams) -> str:
    """Shell text for one step: tool lines, then the sidecar, then links.

    No filesystem access happens here; the same arguments always give the
    same text.
    """
    TaskCls = load_task_class(step_kind)
    task_params = {**dict(params.params), "sample_id": params.sample_id, "tmp_dir": params.tmp_dir}
    task = TaskCls(
        workdir=params.workdir,
        inputs=dict(params.inputs),
        params=task_params,
        threads=params.threads,
    )
    lines: List[str] = ["set -euo pipefail", ""]
    lines += task.to_sh()

    primary = task.outputs[TaskCls.primary_key()]
    lines += ["", *checksum_lines(primary)]
    if params.link_dir:
        lines += ["", *link_lines([primary], params.link_dir)]
    return "\n".join(lines) + "\n"
