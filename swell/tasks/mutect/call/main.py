from __future__ import annotations
from typing import Dict, Any, List, Sequence

from swell.tasks.task import Task, as_list
from swell.tasks.task_registry import register_task
from swell.tasks.utils import ShellVar, java_options, wrap_argv


@register_task("mutect.call")
class MutectCallTask(Task):
    """
    MuTect somatic SNV calling on a tumour sample.

    Paired (patient has a normal; the normal's configured input is used):
        java -Xmx.. -jar $mutect_dir/muTect.jar -T MuTect -R REF \
            --input_file:tumor T.bam --input_file:normal N.bam \
            --tumor_sample_name T --normal_sample_name N \
            --vcf T_MuTect.vcf --out T_MuTect.stats --dbsnp DBSNP [--cosmic] [--normal_panel]

    Tumour-only (no normal; a panel of normals is then mandatory):
        ... --input_file:tumor T.bam --tumor_sample_name T ... --normal_panel PON
    """

    TYPE = "mutect.call"

    INPUTS = {
        "input": {"type": "path", "required": True, "desc": "Tumour BAM"},
        "normal": {"type": "path", "required": False, "desc": "Matched normal BAM"},
    }
    OUTPUTS = {
        "vcf": {"pattern": "{sample_id}_MuTect.vcf", "desc": "Raw calls"},
        "stats": {"pattern": "{sample_id}_MuTect.stats", "desc": "Call stats"},
    }
    DEFAULTS: Dict[str, Any] = {
        "mutect_jar": "$mutect_dir/muTect.jar",
        "interval_padding": 100,
    }
    MODULES = ("mutect",)
    ROLES = ("tumour",)

    @classmethod
    def applies_to(cls, role: str, params: Dict[str, Any]) -> bool:
        if role not in cls.ROLES:
            return False
        return bool(params.get("has_normal") or params.get("pon"))

    def _build_cmd(self, *, inputs, outputs, params, threads, workdir, sample_id=None) -> List[Sequence[str] | str]:
        tumour = as_list(inputs["input"])[0]
        normal = as_list(inputs.get("normal"))
        pon = params.get("pon")
        if not normal and not pon:
            raise ValueError("mutect.call: tumour-only calling requires a panel of normals (pon)")
        for key in ("reference", "dbsnp"):
            if not params.get(key):
                raise ValueError(f"mutect.call: {key} is required")

        argv = ["java", *java_options(params, params.get("tmp_dir")),
                "-jar", ShellVar(params["mutect_jar"]), "-T", "MuTect",
                "-R", params["reference"],
                "--input_file:tumor", tumour]
        if normal:
            argv += ["--input_file:normal", normal[0]]
        argv += ["--tumor_sample_name", sample_id]
        if normal:
            argv += ["--normal_sample_name", params.get("normal_id") or "NORMAL"]
        argv += ["--vcf", outputs["vcf"], "--out", outputs["stats"], "--dbsnp", params["dbsnp"]]
        if params.get("cosmic"):
            argv += ["--cosmic", params["cosmic"]]
        if pon:
            argv += ["--normal_panel", pon]
        if params.get("intervals"):
            argv += ["--intervals", params["intervals"], "--interval_padding", params["interval_padding"]]

        return [wrap_argv(argv, params)]
