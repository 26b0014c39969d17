from __future__ import annotations
from typing import List, Sequence
import shlex

from swell.tasks.task import Task, as_list
from swell.tasks.task_registry import register_task
from swell.tasks.utils import wrap_argv


@register_task("vcftools.filter")
class VcftoolsFilterTask(Task):
    """Drop calls whose FILTER column carries one of `remove_filtered`."""

    TYPE = "vcftools.filter"

    INPUTS = {
        "input": {"type": "path", "required": True, "desc": "VCF"},
    }
    OUTPUTS = {
        "vcf": {"pattern": "{sample_id}_filtered.vcf", "desc": "Filtered VCF"},
    }
    DEFAULTS = {
        "vcftools_bin": "vcftools",
        "remove_filtered": ["REJECT"],
    }
    MODULES = ("vcftools",)

    def _build_cmd(self, *, inputs, outputs, params, threads, workdir, sample_id=None) -> List[Sequence[str] | str]:
        vcf = as_list(inputs["input"])[0]
        flag = "--gzvcf" if vcf.endswith(".gz") else "--vcf"
        argv = [params["vcftools_bin"], flag, vcf]
        for f in as_list(params.get("remove_filtered")):
            argv += ["--remove-filtered", f]
        argv += ["--stdout", "--recode"]
        if params.get("tmp_dir"):
            argv += ["--temp", params["tmp_dir"]]
        return [f"{wrap_argv(argv, params)} > {shlex.quote(outputs['vcf'])}"]
