# swell/errors.py
from __future__ import annotations
from typing import Iterable, List


class SwellError(RuntimeError):
    """Base error. `scope` tells the workflow how far the failure reaches:
    "run" aborts the invocation, "branch" aborts one sample/patient branch."""
    scope = "run"


class ConfigurationError(SwellError):
    def __init__(self, violations: Iterable[str] | str):
        if isinstance(violations, str):
            violations = [violations]
        self.violations: List[str] = list(violations)
        lines = "\n".join(f"  - {v}" for v in self.violations)
        super().__init__(f"{len(self.violations)} configuration problem(s):\n{lines}")


class DirectoryError(SwellError): ...


class MissingUpstreamArtifact(SwellError):
    def __init__(self, missing: Iterable[str]):
        self.missing: List[str] = [str(m) for m in missing]
        lines = "\n".join(f"  - {m}" for m in self.missing)
        super().__init__(f"expected input(s) from a prior stage are missing:\n{lines}")


class SubmissionError(SwellError):
    scope = "branch"


class CleanupGuardFailure(UserWarning):
    """Never raised in-process; its message is what the cleanup job prints when
    a final output is absent and intermediates are kept."""
    MESSAGE = "One or more FINAL OUTPUT FILES is missing; not removing intermediates"
