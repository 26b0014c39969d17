# swell/model.py
from __future__ import annotations
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple

from swell.utils.markers import ArtifactMarker, Disposition

ROLES = ("normal", "tumour")


@dataclass(frozen=True)
class Sample:
    sample_id: str
    role: str
    inputs: Tuple[str, ...]
    patient_id: str = ""

    @property
    def is_tumour(self) -> bool:
        return self.role == "tumour"


@dataclass(frozen=True)
class Patient:
    patient_id: str
    samples: Tuple[Sample, ...] = ()

    @property
    def normals(self) -> Tuple[Sample, ...]:
        return tuple(s for s in self.samples if s.role == "normal")

    @property
    def tumours(self) -> Tuple[Sample, ...]:
        return tuple(s for s in self.samples if s.role == "tumour")


@dataclass(frozen=True)
class Resources:
    time: str = "01:00:00"
    mem: str = "1G"
    cpus: int = 1
    java_mem: Optional[str] = None


@dataclass(frozen=True)
class Step:
    name: str
    kind: str
    command: str
    resources: Resources = field(default_factory=Resources)
    modules: Tuple[str, ...] = ()
    outputs: Tuple[str, ...] = ()
    marker: Optional[ArtifactMarker] = None

    @property
    def primary_output(self) -> Optional[str]:
        return self.outputs[0] if self.outputs else None


@dataclass
class Job:
    name: str
    step: Step
    patient_id: Optional[str] = None
    sample_id: Optional[str] = None
    dependencies: Tuple[str, ...] = ()
    disposition: Disposition = Disposition.RUN
    after: str = "ok"
    strict: bool = True
    script: Optional[Path] = None
    job_id: str = ""

    @property
    def submitted(self) -> bool:
        return self.disposition is Disposition.RUN and bool(self.job_id)
