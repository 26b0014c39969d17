# swell/workflow.py
from __future__ import annotations
import os, shlex, sys
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from swell.cleanup import CleanupPlanner, intermediates_for
from swell.config import ToolConfig, load_sample_config, load_tool_config
from swell.context import RunContext
from swell.emit_config import write_manifest
from swell.errors import ConfigurationError, MissingUpstreamArtifact, SubmissionError
from swell.executor import SchedulerDriver, get_driver
from swell.graph import JobGraph
from swell.metrics import MetricsCollector
from swell.model import Job, Patient, Resources, Sample, Step
from swell.tasks.builder import StepParams, render
from swell.tasks.loader import load_task_class
from swell.utils.log import Logger, RunLog
from swell.utils.markers import ArtifactMarker, Disposition, FileSystem, LocalFileSystem, ResumeGate, missing_paths


# --------------------------
# plans
# --------------------------
@dataclass
class SamplePlan:
    sample: Sample
    steps: List[Step] = field(default_factory=list)

    @property
    def final(self) -> Optional[str]:
        return self.steps[-1].primary_output if self.steps else None


@dataclass
class PatientPlan:
    patient: Patient
    samples: List[SamplePlan] = field(default_factory=list)


@dataclass
class RunSummary:
    context: RunContext
    jobs: List[Job] = field(default_factory=list)
    finals: Dict[str, Dict[str, Dict[str, str]]] = field(default_factory=dict)
    failures: List[str] = field(default_factory=list)

    @property
    def submitted(self) -> List[Job]:
        return [j for j in self.jobs if j.submitted]

    def job(self, name: str) -> Job:
        for j in self.jobs:
            if j.name == name:
                return j
        raise KeyError(name)


# --------------------------
# workflow
# --------------------------
@dataclass
class Workflow:
    # tool / sample config as file or dict
    config_path: Optional[Path] = None
    config_dict: Optional[Dict[str, Any]] = None
    samples_path: Optional[Path] = None
    samples_dict: Optional[Dict[str, Any]] = None

    # command-line overrides; None keeps the config value
    output_dir: Optional[str] = None
    resume: Optional[bool] = None
    dry_run: Optional[bool] = None
    remove: Optional[bool] = None
    cluster: Optional[str] = None
    depends_on: Optional[str] = None

    driver: Optional[SchedulerDriver] = None
    fs: FileSystem = field(default_factory=LocalFileSystem)
    quiet: bool = False

    cfg: ToolConfig = field(init=False)
    patients: Tuple[Patient, ...] = field(init=False)

    def __post_init__(self):
        if self.config_dict is None and self.config_path is None:
            raise ConfigurationError("either a tool config path or dict must be provided")
        if self.samples_dict is None and self.samples_path is None:
            raise ConfigurationError("either a sample config path or dict must be provided")

        # report problems of both files together
        errors: List[str] = []
        try:
            cfg = load_tool_config(self.config_path, data=self.config_dict, output_dir=self.output_dir)
            self.cfg = cfg.with_overrides(
                resume=self.resume,
                dry_run=self.dry_run,
                del_intermediates=self.remove or None,
                hpc_driver=self.cluster,
            )
        except ConfigurationError as e:
            errors += e.violations
        try:
            self.patients = load_sample_config(self.samples_path, data=self.samples_dict)
        except ConfigurationError as e:
            errors += e.violations
        if errors:
            raise ConfigurationError(errors)

    # --------------------------
    # planning (no side effects)
    # --------------------------
    def _tool_params(self, step_params: Dict[str, Any], resources: Resources, has_normal: bool) -> Dict[str, Any]:
        params: Dict[str, Any] = {"reference": self.cfg.reference, **self.cfg.references}
        if resources.java_mem:
            params["java_mem"] = resources.java_mem
        params["has_normal"] = has_normal
        params.update(step_params)
        return params

    def plan_sample(self, ctx: RunContext, patient: Patient, sample: Sample) -> SamplePlan:
        pid, sid = patient.patient_id, sample.sample_id
        normal = patient.normals[0] if patient.normals else None
        sample_dir = ctx.sample_dir(pid, sid)
        tmp_dir = ctx.patient_tmp(pid)
        values = {"sample_id": sid, "patient_id": pid, "output_dir": str(sample_dir), "tmp_dir": str(tmp_dir)}

        # steps apply in order until the first one that does not fit the sample
        chain = []
        for sc in self.cfg.steps:
            params = self._tool_params(sc.render_params(values), sc.resources, normal is not None)
            if not load_task_class(sc.kind).applies_to(sample.role, params):
                break
            chain.append((sc, params))

        plan = SamplePlan(sample=sample)
        prev: List[str] = list(sample.inputs)
        for idx, (sc, params) in enumerate(chain):
            TaskCls = load_task_class(sc.kind)
            inputs: Dict[str, Any] = {"input": prev}
            if sample.is_tumour and normal is not None and "normal" in TaskCls.INPUTS:
                # the normal is read from its configured inputs; there are no cross-sample edges
                if idx > 0:
                    raise ValueError(
                        f"{sc.kind} reads the normal sample's configured inputs and must be the "
                        f"first step of the chain (it is step {idx + 1}, after '{chain[idx - 1][0].name}')"
                    )
                inputs["normal"] = list(normal.inputs)
                params["normal_id"] = normal.sample_id
            last = idx == len(chain) - 1
            command = render(sc.kind, StepParams(
                sample_id=sid,
                workdir=str(sample_dir),
                inputs=inputs,
                params=params,
                threads=sc.resources.cpus,
                tmp_dir=str(tmp_dir),
                link_dir=str(ctx.final_link_dir(pid)) if last else None,
            ))
            outputs = TaskCls.declare_outputs(str(sample_dir), sid)
            primary = outputs[TaskCls.primary_key()]
            plan.steps.append(Step(
                name=sc.name,
                kind=sc.kind,
                command=command,
                resources=sc.resources,
                modules=self.cfg.modules_for(sc.kind),
                outputs=tuple(outputs.values()),
                marker=ArtifactMarker(primary),
            ))
            prev = [primary]
        return plan

    def plan(self, ctx: RunContext) -> List[PatientPlan]:
        """Render every step of every sample; problems are reported together."""
        errors: List[str] = []
        plans: List[PatientPlan] = []
        for patient in self.patients:
            pp = PatientPlan(patient=patient)
            for sample in patient.samples:
                try:
                    pp.samples.append(self.plan_sample(ctx, patient, sample))
                except (ValueError, KeyError) as e:
                    errors.append(f"{patient.patient_id}/{sample.sample_id}: {e}")
            plans.append(pp)
        if errors:
            raise ConfigurationError(errors)
        return plans

    def check_upstream(self, plans: List[PatientPlan], resume: bool) -> None:
        """Inputs of every chain that will actually start must already exist,
        unless the run is chained behind an upstream job."""
        if self.depends_on:
            return
        gate = ResumeGate(self.fs)
        missing: List[str] = []
        for pp in plans:
            for sp in pp.samples:
                if not sp.steps or gate.should_run(sp.steps[0].marker, resume) is Disposition.SKIP:
                    continue
                missing += missing_paths(sp.sample.inputs, self.fs)
        if missing:
            raise MissingUpstreamArtifact(missing)

    # --------------------------
    # submission
    # --------------------------
    def _link_inputs(self, ctx: RunContext, patient: Patient, sample: Sample, log: RunLog) -> None:
        link_dir = ctx.ensure(ctx.input_link_dir(patient.patient_id, sample.sample_id))
        used = set()
        for idx, src in enumerate(sample.inputs, 1):
            name = Path(src).name
            if name in used:
                name = f"{idx}_{name}"
                log.warn(f"{sample.sample_id}: inputs share the file name {Path(src).name}; linked {src} as {name}")
            used.add(name)
            dest = link_dir / name
            if os.path.lexists(dest):
                dest.unlink()
            dest.symlink_to(src)

    def submit_sample(self, graph: JobGraph, patient: Patient, sp: SamplePlan) -> List[Job]:
        """Chain one sample's steps; a skipped step passes its predecessor's id on."""
        jobs: List[Job] = []
        prev = [self.depends_on] if self.depends_on else []
        for step in sp.steps:
            job = graph.add_step(patient, sp.sample, step, depends_on=prev)
            jobs.append(job)
            if job.submitted:
                prev = [job.job_id]
        return jobs

    def submit_patient(self, graph: JobGraph, pp: PatientPlan, summary: RunSummary, log: RunLog) -> None:
        ctx = graph.ctx
        pid = pp.patient.patient_id
        log.echo(f"Initiating process for PATIENT: {pid}")
        ctx.ensure(ctx.patient_tmp(pid))

        finals: List[str] = []
        intermediates: List[str] = []
        for sp in pp.samples:
            sid = sp.sample.sample_id
            if not sp.steps:
                log.echo(f">> no steps apply to {sid} ({sp.sample.role}); skipping sample")
                continue
            ctx.ensure(ctx.sample_dir(pid, sid))
            self._link_inputs(ctx, pp.patient, sp.sample, log)

            # declared up front so a failed branch still blocks cleanup
            finals += [sp.final, ArtifactMarker(sp.final).sidecar]
            intermediates += intermediates_for([list(s.outputs) for s in sp.steps])
            summary.finals.setdefault(pid, {}).setdefault(sp.sample.role, {})[sid] = sp.final
            try:
                self.submit_sample(graph, pp.patient, sp)
            except SubmissionError as e:
                summary.failures.append(f"{pid}/{sid}: {e}")
                log.warn(f"submission failed for {sid}; rest of its chain not submitted ({e})")

        if ctx.delete_intermediates and finals:
            intermediates.append(str(ctx.patient_tmp(pid)))
            try:
                CleanupPlanner(graph).plan(pid, finals, intermediates, graph.fan_in("patient", pid))
            except SubmissionError as e:
                summary.failures.append(f"{pid}/cleanup: {e}")
                log.warn(f"cleanup job for {pid} was not submitted ({e})")

    def submit_output_config(self, graph: JobGraph, summary: RunSummary, log: RunLog) -> None:
        ctx = graph.ctx
        manifest = write_manifest(ctx.log_dir / "output_manifest.json", summary.finals)
        command = " ".join([
            shlex.quote(sys.executable), "-m", "swell.emit_config",
            "--manifest", shlex.quote(str(manifest)),
            "--output", shlex.quote(str(ctx.output_config)),
        ])
        try:
            graph.add_job("output_final_yaml", command, Resources(time="00:05:00", mem="256M", cpus=1),
                          depends_on=graph.fan_in("run"), after="any")
        except SubmissionError as e:
            summary.failures.append(f"output_final_yaml: {e}")
            log.warn(f"downstream config job was not submitted ({e})")

    def run(self) -> RunSummary:
        cfg = self.cfg
        ctx = RunContext.create(
            cfg.output_dir,
            resume=cfg.resume,
            dry_run=cfg.dry_run,
            delete_intermediates=cfg.del_intermediates,
        )
        log = RunLog(ctx.run_log(cfg.project_name), quiet=self.quiet)
        log.echo(f"---\nRunning {cfg.project_name} ({len(self.patients)} patient(s)) in {ctx.output_dir}")
        if ctx.resumed_from is not None:
            log.echo(f"resuming from {ctx.resumed_from}")
        elif cfg.resume:
            log.echo("resume requested but no previous run found; starting fresh")
        if cfg.dry_run:
            log.echo("dry run: job scripts are written but nothing is submitted")

        try:
            plans = self.plan(ctx)
            self.check_upstream(plans, cfg.resume)
        except (ConfigurationError, MissingUpstreamArtifact):
            # nothing was submitted; leave no empty run for resume to find
            ctx.discard()
            raise

        driver = self.driver or get_driver(cfg.hpc_driver, ctx.log_dir, queue=cfg.sge_queue)
        upstream = [self.depends_on] if self.depends_on else []
        graph = JobGraph(ctx, driver, ResumeGate(self.fs), log, upstream=upstream)
        summary = RunSummary(context=ctx, jobs=graph.jobs)

        timings = ctx.log_dir / "phase_timings.jsonl"
        for pp in plans:
            timed = Logger(self.submit_patient, task_id=pp.patient.patient_id, sink=timings)
            timed(graph, pp, summary, log)

        if cfg.create_output_yaml:
            self.submit_output_config(graph, summary, log)

        try:
            MetricsCollector(graph, ctx.metrics_file, ctx.run_count).collect(graph.fan_in("run"))
        except SubmissionError as e:
            summary.failures.append(f"job metrics: {e}")
            log.warn(f"job metrics collection was not submitted ({e})")

        self.report(summary, log)
        return summary

    def report(self, summary: RunSummary, log: RunLog) -> None:
        for pid, roles in summary.finals.items():
            log.echo(f"PATIENT: {pid}")
            for role, samples in roles.items():
                for sid, path in samples.items():
                    log.echo(f"  FINAL OUTPUT ({role} {sid}): {path}")
        for failure in summary.failures:
            log.warn(failure)
        log.echo(f"{len(summary.submitted)} job(s) submitted, "
                 f"{sum(1 for j in summary.jobs if j.disposition is Disposition.SKIP)} skipped")
