# swell/graph.py
from __future__ import annotations
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Union

from swell.context import RunContext
from swell.errors import SubmissionError
from swell.executor import SchedulerDriver
from swell.model import Job, Patient, Resources, Sample, Step
from swell.utils.log import RunLog
from swell.utils.markers import Disposition, ResumeGate
from swell.utils.sh_writer import write_script_from_cmds


def _id_of(obj: Union[Patient, Sample, str, None], attr: str) -> Optional[str]:
    if obj is None or isinstance(obj, str):
        return obj
    return getattr(obj, attr)


class JobGraph:
    """Every job of one invocation, in submission order.

    Append-only: a job may only depend on ids that were handed out earlier,
    which keeps the graph acyclic by construction. Ids are kept per patient
    and for the whole run so cleanup and metrics can fan in.
    """

    def __init__(self, ctx: RunContext, driver: SchedulerDriver,
                 gate: Optional[ResumeGate] = None, log: Optional[RunLog] = None,
                 upstream: Iterable[str] = ()):
        self.ctx = ctx
        self.driver = driver
        self.gate = gate or ResumeGate()
        self.log = log or RunLog(quiet=True)
        self.jobs: List[Job] = []
        self._run_ids: List[str] = []
        self._patient_ids: Dict[str, List[str]] = {}
        # ids from an earlier stage may be waited on but are never fanned in
        self._known: set[str] = {u for u in upstream if u}

    # --------------------------
    # nodes
    # --------------------------
    def add_step(self, patient: Union[Patient, str], sample: Union[Sample, str], step: Step,
                 depends_on: Iterable[str] = ()) -> Job:
        pid = _id_of(patient, "patient_id")
        sid = _id_of(sample, "sample_id")
        job = Job(
            name=f"run_{step.name}_{sid}",
            step=step,
            patient_id=pid,
            sample_id=sid,
            dependencies=self._clean(depends_on),
            disposition=self.gate.should_run(step.marker, self.ctx.resume),
        )
        self.jobs.append(job)
        if job.disposition is Disposition.SKIP:
            self.log.echo(f">> skipping {step.name} for {sid}; {step.marker.path} is already complete")
            return job
        self.submit(job)
        return job

    def add_job(self, name: str, command: str, resources: Resources, depends_on: Iterable[str] = (),
                *, patient: Optional[str] = None, after: str = "ok",
                modules: Sequence[str] = (), strict: bool = True) -> Job:
        """Job that always runs (cleanup, metrics, downstream config)."""
        step = Step(name=name, kind="internal", command=command, resources=resources, modules=tuple(modules))
        job = Job(name=name, step=step, patient_id=patient,
                  dependencies=self._clean(depends_on), after=after, strict=strict)
        self.jobs.append(job)
        self.submit(job)
        return job

    # --------------------------
    # submission
    # --------------------------
    def submit(self, job: Job) -> str:
        unknown = [d for d in job.dependencies if d not in self._known]
        if unknown:
            raise ValueError(f"{job.name} depends on id(s) not submitted earlier in this run: {unknown}")

        job.script = self.write_script(job)
        jid = self.driver.submit(job.script, job.dependencies, dry_run=self.ctx.dry_run, after=job.after)
        if not jid:
            raise SubmissionError(f"{job.name}: scheduler returned an empty job id")
        if jid in self._known:
            raise SubmissionError(f"{job.name}: scheduler returned duplicate job id {jid}")

        job.job_id = jid
        self._known.add(jid)
        self._run_ids.append(jid)
        if job.patient_id is not None:
            self._patient_ids.setdefault(job.patient_id, []).append(jid)

        deps = f" (after{job.after}: {', '.join(job.dependencies)})" if job.dependencies else ""
        self.log.echo(f">> {job.name}: {jid}{deps}")
        return jid

    def write_script(self, job: Job) -> Path:
        return write_script_from_cmds(
            [job.step.command.rstrip("\n")],
            self.ctx.log_dir / f"{job.name}.sh",
            directives=self.driver.script_header(job.name, job.step.resources),
            modules=job.step.modules,
            strict=job.strict,
        )

    # --------------------------
    # fan-in
    # --------------------------
    def fan_in(self, scope: str = "run", patient: Optional[str] = None) -> List[str]:
        if scope == "run":
            return list(self._run_ids)
        if scope == "patient":
            if patient is None:
                raise ValueError("fan_in('patient') needs a patient id")
            return list(self._patient_ids.get(patient, []))
        raise ValueError(f"unknown fan-in scope: {scope!r}")

    @property
    def submitted(self) -> List[Job]:
        return [j for j in self.jobs if j.submitted]

    @staticmethod
    def _clean(ids: Iterable[str]) -> tuple:
        # skipped steps hand back "" and must not break the chain
        out: List[str] = []
        for i in ids or ():
            if i and i not in out:
                out.append(i)
        return tuple(out)
