from __future__ import annotations
import abc
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from swell.tasks.utils import to_sh_from_builder


class Task(abc.ABC):
    """
    Base class for every step kind.

    Subclasses declare:
      TYPE      registry key, "<tool>.<func>"
      INPUTS    input keys; "input" is the previous step's primary output
                (or the sample's configured inputs for the first step)
      OUTPUTS   output key -> {"pattern": "...{sample_id}..."}; the first key
                is the primary output, the one that carries the checksum sidecar
      DEFAULTS  parameter defaults merged under user PARAMS
      MODULES   tool names resolved to `tool/version` environment modules
      ROLES     sample roles the step applies to
    """

    TYPE: str = ""
    INPUTS: Dict[str, Dict[str, Any]] = {}
    OUTPUTS: Dict[str, Dict[str, Any]] = {}
    DEFAULTS: Dict[str, Any] = {}
    MODULES: Tuple[str, ...] = ()
    ROLES: Tuple[str, ...] = ("normal", "tumour")

    def __init__(
        self,
        workdir: str | Path,
        inputs: Optional[Dict[str, Any]] = None,
        outputs: Optional[Dict[str, Any]] = None,
        params: Optional[Dict[str, Any]] = None,
        threads: int = 1,
    ):
        self.workdir = Path(workdir)
        self.inputs = inputs or {}
        self.params = {**self.DEFAULTS, **(params or {})}
        self.threads = int(threads)
        self.outputs = outputs or self.declare_outputs(self.workdir, self.params.get("sample_id", ""))

    # --------------------------
    # declarations
    # --------------------------
    @classmethod
    def declare_outputs(cls, workdir: str | Path, sample_id: str) -> Dict[str, str]:
        return {
            key: os.path.join(str(workdir), spec["pattern"].format(sample_id=sample_id))
            for key, spec in cls.OUTPUTS.items()
        }

    @classmethod
    def primary_key(cls) -> str:
        return next(iter(cls.OUTPUTS))

    @classmethod
    def applies_to(cls, role: str, params: Dict[str, Any]) -> bool:
        return role in cls.ROLES

    def check_inputs(self) -> None:
        missing = [k for k, spec in self.INPUTS.items()
                   if spec.get("required") and not self.inputs.get(k)]
        if missing:
            raise ValueError(f"{self.TYPE}: missing required input(s): {', '.join(missing)}")

    # --------------------------
    # shell
    # --------------------------
    @abc.abstractmethod
    def _build_cmd(self, *, inputs: Dict[str, Any], outputs: Dict[str, Any], params: Dict[str, Any],
                   threads: int, workdir: str, sample_id: str | None = None) -> List[Sequence[str] | str]:
        ...

    def to_sh(self) -> List[str]:
        self.check_inputs()
        return to_sh_from_builder(
            builder=self._build_cmd,
            inputs=self.inputs,
            outputs=self.outputs,
            params=self.params,
            threads=self.threads,
            workdir=str(self.workdir),
            sample_id=self.params.get("sample_id") or None,
        )


def as_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [str(v) for v in value]
    return [str(value)]
