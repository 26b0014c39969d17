from __future__ import annotations
from typing import Dict, Any, List, Sequence
import os

from swell.tasks.task import Task, as_list
from swell.tasks.task_registry import register_task
from swell.tasks.utils import wrap_argv


@register_task("bwa.mem")
class BwaMemTask(Task):
    """
    BWA MEM alignment, coordinate sorted and indexed.

    Runs:
      bwa mem -M -t {threads} -R "@RG\\tID:{sample_id}\\tPL:{platform}\\tLB:{library}\\tSM:{sample_id}" \
          {reference} {read1} [{read2}] \
        | samtools sort -@ {threads} -T {tmp_dir}/{sample_id}.sort -o {sample_id}.bwa.sorted.bam -
      samtools index {sample_id}.bwa.sorted.bam
    """

    TYPE = "bwa.mem"

    INPUTS = {
        "input": {"type": "path", "required": True, "desc": "FASTQ read1 [read2]"},
    }
    OUTPUTS = {
        "bam": {"pattern": "{sample_id}.bwa.sorted.bam", "desc": "Sorted BAM"},
        "bai": {"pattern": "{sample_id}.bwa.sorted.bam.bai", "desc": "BAM index"},
    }
    DEFAULTS: Dict[str, Any] = {
        "bwa_bin": "bwa",
        "samtools_bin": "samtools",
        "platform": "ILLUMINA",
        "library_name": None,
        "center": None,
    }
    MODULES = ("bwa", "samtools")

    def _build_cmd(
            self, *, inputs: Dict[str, Any], outputs: Dict[str, Any], params: Dict[str, Any],
            threads: int, workdir: str, sample_id: str | None = None
        ) -> List[Sequence[str] | str]:
        reads = as_list(inputs.get("input"))
        if not 1 <= len(reads) <= 2:
            raise ValueError(f"bwa.mem expects one or two FASTQ files, got {len(reads)}")
        reference = params.get("reference")
        if not reference:
            raise ValueError("bwa.mem: reference is required")

        rg_line = (
            f"@RG\\tID:{params.get('read_group_id') or sample_id}"
            f"\\tPL:{params.get('platform', 'ILLUMINA')}"
            f"\\tLB:{params.get('library_name') or sample_id}"
            f"\\tSM:{sample_id}"
        )
        if params.get("center"):
            rg_line += f"\\tCN:{params['center']}"

        bam = outputs["bam"]
        tmp_prefix = os.path.join(params.get("tmp_dir") or workdir, f"{sample_id}.sort")

        align = wrap_argv(
            [params["bwa_bin"], "mem", "-M", "-t", threads, "-R", rg_line, reference, *reads],
            params,
        )
        sort = wrap_argv(
            [params["samtools_bin"], "sort", "-@", threads, "-T", tmp_prefix, "-o", bam, "-"],
            params,
        )
        index = wrap_argv([params["samtools_bin"], "index", bam], params)
        return [f"{align} \\\n  | {sort}", index]
