# swell/cleanup.py
from __future__ import annotations
import shlex
from typing import Iterable, List, Optional

from swell.errors import CleanupGuardFailure
from swell.model import Job, Resources
from swell.utils.markers import SIDECAR_SUFFIX


class CleanupPlanner:
    """Per-patient removal of intermediates, guarded at run time.

    The job is wired after every job of the patient, but only the file check
    inside the script decides whether anything is deleted: a producer may have
    been accepted by the scheduler and still failed.
    """
    RESOURCES = Resources(time="00:05:00", mem="256M", cpus=1)

    def __init__(self, graph=None):
        self.graph = graph

    @staticmethod
    def build(final_outputs: Iterable[str], intermediate_paths: Iterable[str]) -> str:
        finals = [str(p) for p in final_outputs]
        doomed = [str(p) for p in intermediate_paths
                  if str(p) not in finals and not str(p).endswith(SIDECAR_SUFFIX)]
        warn = f'echo "WARNING: {CleanupGuardFailure.MESSAGE}" >&2'
        if not finals:
            return f"{warn}\n"
        guard = " && ".join(f"[ -s {shlex.quote(p)} ]" for p in finals)
        if not doomed:
            return "\n".join([
                f"if {guard}; then",
                "  echo \"nothing to remove\"",
                "else",
                f"  {warn}",
                "fi",
            ]) + "\n"
        return "\n".join([
            f"if {guard}; then",
            f"  rm -rf {' '.join(shlex.quote(p) for p in doomed)}",
            "else",
            f"  {warn}",
            "fi",
        ]) + "\n"

    def plan(self, patient_id: str, final_outputs: Iterable[str], intermediate_paths: Iterable[str],
             depends_on: Iterable[str]) -> Optional[Job]:
        """Submit the cleanup job for one patient (after every job of that patient, success or not)."""
        return self.graph.add_job(
            f"run_cleanup_{patient_id}",
            self.build(final_outputs, intermediate_paths),
            self.RESOURCES,
            depends_on=list(depends_on),
            patient=patient_id,
            after="any",
            strict=False,
        )


def intermediates_for(chain_outputs: List[List[str]]) -> List[str]:
    """All outputs of a sample chain except the last step's."""
    out: List[str] = []
    for outputs in chain_outputs[:-1]:
        out += outputs
    return out
