# swell/config.py
from __future__ import annotations
import re, yaml
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Tuple

from swell.errors import ConfigurationError
from swell.model import ROLES, Patient, Resources, Sample
from swell.tasks.loader import autoload_tasks, load_task_class
from swell.tasks.task_registry import TaskRegistry

DRIVERS = ("slurm", "sge", "local", "dry")
FLAGS = ("resume", "dry_run", "del_intermediates", "create_output_yaml")
REFERENCE_KEYS = ("dbsnp", "cosmic", "pon", "intervals")
_ID = re.compile(r"^[A-Za-z0-9][A-Za-z0-9._-]*$")


# --------------------------
# helpers
# --------------------------
def parse_flag(value: Any) -> bool:
    """Y/N switches (booleans are accepted too)."""
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().upper() in ("Y", "N"):
        return value.strip().upper() == "Y"
    raise ValueError(f"expected Y or N, got {value!r}")


def _render_value(val: Any, ctx: Dict[str, Any]) -> Any:
    if isinstance(val, str):
        return re.sub(r"\{([a-zA-Z0-9_]+)\}", lambda m: str(ctx.get(m.group(1), m.group(0))), val)
    if isinstance(val, list):
        return [_render_value(v, ctx) for v in val]
    if isinstance(val, dict):
        return {k: _render_value(v, ctx) for k, v in val.items()}
    return val


def _read_yaml(path: str | Path) -> Any:
    try:
        return yaml.safe_load(Path(path).read_text())
    except FileNotFoundError:
        raise ConfigurationError(f"config file not found: {path}") from None
    except yaml.YAMLError as e:
        raise ConfigurationError(f"{path}: invalid YAML ({e})") from e


# --------------------------
# tool configuration
# --------------------------
@dataclass(frozen=True)
class StepConfig:
    name: str
    kind: str
    params: Dict[str, Any] = field(default_factory=dict)
    resources: Resources = field(default_factory=Resources)

    def render_params(self, ctx: Dict[str, Any]) -> Dict[str, Any]:
        return _render_value(dict(self.params), ctx)


@dataclass(frozen=True)
class ToolConfig:
    project_name: str
    output_dir: str
    reference: str
    steps: Tuple[StepConfig, ...]
    tool_versions: Dict[str, str] = field(default_factory=dict)
    references: Dict[str, str] = field(default_factory=dict)
    hpc_driver: str = "slurm"
    sge_queue: Optional[str] = None
    resume: bool = False
    dry_run: bool = False
    del_intermediates: bool = False
    create_output_yaml: bool = False

    def modules_for(self, kind: str) -> Tuple[str, ...]:
        tools = load_task_class(kind).MODULES
        return tuple(f"{t}/{self.tool_versions[t]}" for t in tools)

    def with_overrides(self, **kwargs) -> "ToolConfig":
        changes = {k: v for k, v in kwargs.items() if v is not None}
        return replace(self, **changes) if changes else self


def _parse_resources(name: str, raw: Any, errors: List[str]) -> Resources:
    if not isinstance(raw, Mapping):
        errors.append(f"parameters.{name}: missing resource block {{time, mem, cpus}}")
        return Resources()
    for key in ("time", "mem"):
        if not raw.get(key):
            errors.append(f"parameters.{name}.{key} is required")
    cpus = raw.get("cpus", 1)
    if not isinstance(cpus, int) or isinstance(cpus, bool) or cpus < 1:
        errors.append(f"parameters.{name}.cpus must be a positive integer, got {cpus!r}")
        cpus = 1
    return Resources(
        time=str(raw.get("time") or Resources.time),
        mem=str(raw.get("mem") or Resources.mem),
        cpus=cpus,
        java_mem=str(raw["java_mem"]) if raw.get("java_mem") else None,
    )


def _parse_task_list(cfg: Mapping[str, Any], versions: Mapping[str, Any],
                     errors: List[str]) -> Tuple[StepConfig, ...]:
    """
    TASK_LIST:
      - <name>:
          TOOL: <tool>.<func>
          PARAMS: { ... }
    """
    raw = cfg.get("TASK_LIST")
    if not isinstance(raw, list) or not raw:
        errors.append("TASK_LIST must be a non-empty list")
        return ()

    resources = cfg.get("parameters") or {}
    steps: List[StepConfig] = []
    seen = set()
    for idx, item in enumerate(raw, 1):
        if not isinstance(item, Mapping) or len(item) != 1:
            errors.append(f"TASK_LIST[{idx}]: expected a single '<name>: {{...}}' entry")
            continue
        name, spec = next(iter(item.items()))
        if name in seen:
            errors.append(f"TASK_LIST[{idx}]: duplicate step name '{name}'")
        seen.add(name)
        if not isinstance(spec, Mapping):
            errors.append(f"TASK '{name}': spec must be a mapping")
            continue
        kind = spec.get("TOOL")
        if not kind:
            errors.append(f"TASK '{name}': missing TOOL")
            continue
        try:
            TaskCls = load_task_class(str(kind))
        except KeyError:
            autoload_tasks()
            errors.append(f"TASK '{name}': unknown TOOL '{kind}' (known: {', '.join(TaskRegistry.known())})")
            continue
        for tool in TaskCls.MODULES:
            if not versions.get(tool):
                errors.append(f"TASK '{name}': tool_versions.{tool} is required by {kind}")
        params = spec.get("PARAMS") or {}
        if not isinstance(params, Mapping):
            errors.append(f"TASK '{name}': PARAMS must be a mapping")
            params = {}
        steps.append(StepConfig(
            name=str(name),
            kind=str(kind).lower(),
            params=dict(params),
            resources=_parse_resources(str(name), resources.get(name), errors),
        ))
    return tuple(steps)


def load_tool_config(path: str | Path | None = None, *, data: Optional[Mapping[str, Any]] = None,
                     output_dir: Optional[str] = None) -> ToolConfig:
    """Validate the tool config; every violation is reported in one ConfigurationError."""
    cfg = data if data is not None else _read_yaml(path)
    if not isinstance(cfg, Mapping):
        raise ConfigurationError("tool config must be a mapping")

    errors: List[str] = []
    for key in ("project_name", "reference"):
        if not cfg.get(key):
            errors.append(f"{key} is required")
    out = output_dir or cfg.get("output_dir")
    if not out:
        errors.append("output_dir is required (or pass --out-dir)")

    driver = str(cfg.get("hpc_driver", "slurm")).lower()
    if driver not in DRIVERS:
        errors.append(f"hpc_driver must be one of {', '.join(DRIVERS)}, got {driver!r}")

    flags: Dict[str, bool] = {}
    for key in FLAGS:
        try:
            flags[key] = parse_flag(cfg.get(key, "N"))
        except ValueError as e:
            errors.append(f"{key}: {e}")

    versions = cfg.get("tool_versions") or {}
    if not isinstance(versions, Mapping):
        errors.append("tool_versions must be a mapping of tool -> version")
        versions = {}

    steps = _parse_task_list(cfg, versions, errors)

    if errors:
        raise ConfigurationError(errors)

    return ToolConfig(
        project_name=str(cfg["project_name"]),
        output_dir=str(out),
        reference=str(cfg["reference"]),
        steps=steps,
        tool_versions={str(k): str(v) for k, v in versions.items()},
        references={k: str(cfg[k]) for k in REFERENCE_KEYS if cfg.get(k)},
        hpc_driver=driver,
        sge_queue=cfg.get("sge_queue"),
        **flags,
    )


# --------------------------
# sample configuration
# --------------------------
def load_sample_config(path: str | Path | None = None, *,
                       data: Optional[Mapping[str, Any]] = None) -> Tuple[Patient, ...]:
    """
    <patient>:
      normal: {<sample>: <path> | [<path>, ...]}
      tumour: {<sample>: <path> | [<path>, ...]}
    """
    cfg = data if data is not None else _read_yaml(path)
    if not isinstance(cfg, Mapping) or not cfg:
        raise ConfigurationError("sample config must be a non-empty mapping of patients")

    errors: List[str] = []
    patients: List[Patient] = []
    seen: Dict[str, str] = {}
    for pid, roles in cfg.items():
        pid = str(pid)
        if not _ID.match(pid):
            errors.append(f"patient id {pid!r} contains invalid characters")
        if not isinstance(roles, Mapping):
            errors.append(f"{pid}: expected a mapping with 'normal' and/or 'tumour'")
            continue
        unknown = [r for r in roles if r not in ROLES]
        if unknown:
            errors.append(f"{pid}: unknown role(s) {', '.join(map(str, unknown))}")

        samples: List[Sample] = []
        for role in ROLES:
            block = roles.get(role) or {}
            if not isinstance(block, Mapping):
                errors.append(f"{pid}.{role}: expected a mapping of sample -> path")
                continue
            for sid, paths in block.items():
                sid = str(sid)
                if not _ID.match(sid):
                    errors.append(f"{pid}.{role}: sample id {sid!r} contains invalid characters")
                if sid in seen:
                    errors.append(f"{pid}.{role}: sample id {sid} already used by patient {seen[sid]}")
                seen[sid] = pid
                paths = paths if isinstance(paths, list) else [paths]
                if not paths or not all(isinstance(p, str) and p for p in paths):
                    errors.append(f"{pid}.{role}.{sid}: input path(s) must be non-empty strings")
                    continue
                samples.append(Sample(sample_id=sid, role=role, inputs=tuple(paths), patient_id=pid))
        if not samples:
            errors.append(f"{pid}: no samples")
        patients.append(Patient(patient_id=pid, samples=tuple(samples)))

    if errors:
        raise ConfigurationError(errors)
    return tuple(patients)
