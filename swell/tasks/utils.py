# swell/tasks/utils.py
from __future__ import annotations
from pathlib import Path
from typing import Any, Iterable, Sequence, Optional, List, Union, Callable, Dict
import shlex

from swell.utils.markers import SIDECAR_SUFFIX


class ShellVar(str):
    """Argv token left unquoted so the job shell expands it, e.g. `$picard_dir/picard.jar`."""


def _token(t: Any) -> str:
    return t if isinstance(t, ShellVar) else str(t)


def quote_argv(argv: Iterable[Any]) -> str:
    return " ".join(t if isinstance(t, ShellVar) else shlex.quote(str(t)) for t in argv)


def normalize_binds(binds: Any) -> Optional[List[str]]:
    """
    - None → None
    - 'a,b' → ['a','b']
    - ['a','b'] → ['a','b']
    """
    if binds is None:
        return None
    if isinstance(binds, str):
        vals = [x.strip() for x in binds.split(",") if x.strip()]
        return vals or None
    if isinstance(binds, (list, tuple)):
        return [str(x) for x in binds]
    return None


def singularity_exec_cmd(
        *,
        image: str,
        argv: Sequence[Any],
        binds: Optional[Sequence[str]] = None,
        singularity_bin: str = "singularity",
    ) -> List[str]:
    cmd: List[str] = [singularity_bin, "exec"]
    for b in (binds or []):
        cmd += ["-B", str(b)]
    cmd.append(str(image))
    cmd += [_token(t) for t in argv]
    return cmd


def wrap_argv(argv: Sequence[Any], params: Dict[str, Any]) -> str:
    """Quote argv into one shell line, inside the container when `image` is set."""
    argv = [_token(t) for t in argv]
    image = params.get("image")
    if image:
        argv = singularity_exec_cmd(
            image=str(image),
            argv=argv,
            binds=normalize_binds(params.get("binds")),
            singularity_bin=str(params.get("singularity_bin", "singularity")),
        )
    return quote_argv(argv)


def java_options(params: Dict[str, Any], tmp_dir: Optional[str]) -> List[str]:
    opts = [f"-Xmx{params.get('java_mem') or '4g'}"]
    if tmp_dir:
        opts.append(f"-Djava.io.tmpdir={tmp_dir}")
    return opts


def join_argv_lines(lines: Iterable[Union[str, Sequence[Any]]]) -> List[str]:
    out: List[str] = []
    for ln in lines:
        if isinstance(ln, (list, tuple)):
            out.append(quote_argv(ln))
        else:
            out.append(str(ln))
    return out


def to_sh_from_builder(
        *,
        builder: Callable[..., Iterable[Union[str, Sequence[str]]]],
        inputs: Dict[str, Any],
        outputs: Dict[str, Any],
        params: Dict[str, Any],
        threads: int,
        workdir: str,
        sample_id: Optional[str] = None,
    ) -> List[str]:
    lines = builder(
        inputs=inputs,
        outputs=outputs,
        params=params,
        threads=threads,
        workdir=workdir,
        sample_id=sample_id,
    )
    return join_argv_lines(lines)


def checksum_lines(path: str) -> List[str]:
    """Sidecar is only produced once the output is present and non-empty."""
    q = shlex.quote(str(path))
    side = shlex.quote(f"{path}{SIDECAR_SUFFIX}")
    part = shlex.quote(f"{path}{SIDECAR_SUFFIX}.partial")
    return [
        f"if [ ! -s {q} ]; then",
        f"  echo \"missing or empty output: \"{q} >&2",
        "  exit 1",
        "fi",
        f"md5sum {q} > {part} && mv {part} {side}",
    ]


def link_lines(paths: Iterable[str], link_dir: str) -> List[str]:
    paths = list(paths)
    if not paths:
        return []
    out = [f"mkdir -p {shlex.quote(str(link_dir))}"]
    for p in paths:
        dest = Path(link_dir) / Path(p).name
        out.append(f"ln -sfn {shlex.quote(str(p))} {shlex.quote(str(dest))}")
    return out
