from __future__ import annotations
from typing import Dict, Any, List, Sequence

from swell.tasks.task import Task, as_list
from swell.tasks.task_registry import register_task
from swell.tasks.utils import java_options, wrap_argv


@register_task("gatk.haplotypecaller")
class GatkHaplotypeCallerTask(Task):
    """
    Per-sample germline calling in GVCF mode.

    Example:
        gatk --java-options "-Xmx6g -Djava.io.tmpdir=TEMP" HaplotypeCaller \
            -R $REF -I {sample_id}.markdup.bam -O {sample_id}.g.vcf.gz \
            -ERC GVCF [--dbsnp $DBSNP] [-L $BED --interval-padding 100]
    """

    TYPE = "gatk.haplotypecaller"

    INPUTS = {
        "input": {"type": "path", "required": True, "desc": "BAM"},
    }
    OUTPUTS = {
        "gvcf": {"pattern": "{sample_id}.g.vcf.gz", "desc": "GVCF"},
        "tbi": {"pattern": "{sample_id}.g.vcf.gz.tbi", "desc": "GVCF index"},
    }
    DEFAULTS = {
        "gatk_bin": "gatk",
        "interval_padding": 100,
    }
    MODULES = ("gatk",)

    def _build_cmd(self, *, inputs, outputs, params, threads, workdir, sample_id=None) -> List[Sequence[str] | str]:
        bams = as_list(inputs["input"])
        ref = params.get("reference")
        if not ref:
            raise ValueError("gatk.haplotypecaller: reference is required")

        cmd = [
            params["gatk_bin"],
            "--java-options", " ".join(java_options(params, params.get("tmp_dir"))),
            "HaplotypeCaller",
            "-R", ref,
        ]
        for bam in bams:
            cmd += ["-I", bam]
        cmd += ["-O", outputs["gvcf"], "-ERC", "GVCF"]
        if params.get("dbsnp"):
            cmd += ["--dbsnp", params["dbsnp"]]
        if params.get("intervals"):
            cmd += ["-L", params["intervals"], "--interval-padding", params["interval_padding"]]
        return [wrap_argv(cmd, params)]
