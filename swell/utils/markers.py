# swell/utils/markers.py
from __future__ import annotations
import enum, hashlib
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterable, Mapping, Optional, Protocol

SIDECAR_SUFFIX = ".md5"


class Disposition(enum.Enum):
    RUN = "run"
    SKIP = "skip"


@dataclass(frozen=True)
class ArtifactMarker:
    """A declared output plus the checksum file that proves it was finished."""
    path: str

    @property
    def sidecar(self) -> str:
        return f"{self.path}{SIDECAR_SUFFIX}"


# ------------------------------
# filesystem capability
# ------------------------------
class FileSystem(Protocol):
    def exists(self, path: str) -> bool: ...
    def read_checksum(self, path: str) -> Optional[str]: ...
    def write_marker(self, path: str, digest: Optional[str] = None) -> str: ...


def md5_of(path: str | Path, chunk: int = 1 << 20) -> str:
    h = hashlib.md5()
    with open(path, "rb") as fh:
        for block in iter(lambda: fh.read(chunk), b""):
            h.update(block)
    return h.hexdigest()


class LocalFileSystem:
    def exists(self, path: str) -> bool:
        return Path(path).exists()

    def read_checksum(self, path: str) -> Optional[str]:
        """Digest recorded in `<path>.md5` (md5sum format), or None."""
        side = Path(f"{path}{SIDECAR_SUFFIX}")
        try:
            text = side.read_text().strip()
        except FileNotFoundError:
            return None
        return text.split()[0] if text else None

    def write_marker(self, path: str, digest: Optional[str] = None) -> str:
        digest = digest or md5_of(path)
        side = Path(f"{path}{SIDECAR_SUFFIX}")
        tmp = side.with_name(side.name + ".partial")
        tmp.write_text(f"{digest}  {path}\n")
        tmp.replace(side)
        return str(side)


class MemoryFileSystem:
    """In-memory stand-in used to plan runs without touching disk."""

    def __init__(self, files: Optional[Mapping[str, str]] = None):
        self.files: Dict[str, str] = dict(files or {})

    def exists(self, path: str) -> bool:
        return str(path) in self.files

    def read_checksum(self, path: str) -> Optional[str]:
        text = self.files.get(f"{path}{SIDECAR_SUFFIX}")
        return text.split()[0] if text else None

    def write_marker(self, path: str, digest: Optional[str] = None) -> str:
        if digest is None:
            digest = hashlib.md5(self.files.get(str(path), "").encode()).hexdigest()
        side = f"{path}{SIDECAR_SUFFIX}"
        self.files[side] = f"{digest}  {path}\n"
        return side


# ------------------------------
# resume decision
# ------------------------------
class ResumeGate:
    def __init__(self, fs: Optional[FileSystem] = None):
        self.fs = fs or LocalFileSystem()

    def should_run(self, marker: Optional[ArtifactMarker], resume: bool) -> Disposition:
        # the raw output alone may be a truncated file from a killed job
        if resume and marker is not None and self.fs.exists(marker.sidecar):
            return Disposition.SKIP
        return Disposition.RUN


# ------------------------------
# helpers
# ------------------------------
def missing_paths(paths: Iterable[str], fs: Optional[FileSystem] = None) -> list[str]:
    fs = fs or LocalFileSystem()
    return [p for p in paths if not fs.exists(p)]
