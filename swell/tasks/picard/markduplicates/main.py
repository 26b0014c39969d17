from __future__ import annotations
from typing import Dict, Any, List, Sequence, Optional

from swell.tasks.task import Task, as_list
from swell.tasks.task_registry import register_task
from swell.tasks.utils import ShellVar, java_options, wrap_argv


@register_task("picard.markduplicates")
class PicardMarkDuplicatesTask(Task):
    TYPE = "picard.markduplicates"

    INPUTS = {
        "input": {"type": "path", "required": True, "desc": "Coordinate sorted BAM"},
    }
    OUTPUTS = {
        "bam": {"pattern": "{sample_id}.markdup.bam", "desc": "Duplicate marked BAM"},
        "bai": {"pattern": "{sample_id}.markdup.bai", "desc": "BAM index"},
        "metrics": {"pattern": "{sample_id}.markdup.metrics.txt", "desc": "Duplication metrics"},
    }
    DEFAULTS: Dict[str, Any] = {
        "picard_jar": "$picard_dir/picard.jar",
        "remove_duplicates": False,
    }
    MODULES = ("picard",)

    def _build_cmd(self, *, inputs, outputs, params, threads, workdir,
                   sample_id: Optional[str] = None) -> List[Sequence[str] | str]:
        bams = as_list(inputs["input"])
        argv = ["java", *java_options(params, params.get("tmp_dir")),
                "-jar", ShellVar(params["picard_jar"]), "MarkDuplicates"]
        for bam in bams:
            argv.append(f"INPUT={bam}")
        argv += [
            f"OUTPUT={outputs['bam']}",
            f"METRICS_FILE={outputs['metrics']}",
            "ASSUME_SORTED=true",
            "CREATE_INDEX=true",
            f"REMOVE_DUPLICATES={str(bool(params.get('remove_duplicates'))).lower()}",
        ]
        return [wrap_argv(argv, params)]
