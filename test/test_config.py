import pytest
import yaml

from swell.config import load_sample_config, load_tool_config, parse_flag
from swell.errors import ConfigurationError


def test_tool_config_loads(tool_cfg):
    cfg = load_tool_config(data=tool_cfg)

    assert cfg.project_name == "demo"
    assert [s.name for s in cfg.steps] == ["align", "call"]
    assert cfg.steps[0].kind == "bwa.mem"
    assert cfg.steps[0].resources.cpus == 8
    assert cfg.steps[1].resources.java_mem == "6g"
    assert cfg.del_intermediates is True and cfg.resume is False
    assert cfg.references == {"dbsnp": "/refs/dbsnp.vcf.gz"}
    assert cfg.modules_for("bwa.mem") == ("bwa/0.7.17", "samtools/1.17")


def test_tool_config_from_yaml_file(tmp_path, tool_cfg):
    path = tmp_path / "tool.yaml"
    path.write_text(yaml.safe_dump(tool_cfg))
    cfg = load_tool_config(path, output_dir="/elsewhere")
    assert cfg.output_dir == "/elsewhere"


def test_every_violation_reported_at_once(tool_cfg):
    del tool_cfg["reference"]
    tool_cfg["resume"] = "maybe"
    tool_cfg["hpc_driver"] = "pbs"
    tool_cfg["TASK_LIST"].append({"annotate": {"TOOL": "vep.annotate"}})
    del tool_cfg["parameters"]["call"]
    del tool_cfg["tool_versions"]["samtools"]

    with pytest.raises(ConfigurationError) as exc:
        load_tool_config(data=tool_cfg)

    problems = "\n".join(exc.value.violations)
    assert len(exc.value.violations) == 6
    assert "reference is required" in problems
    assert "resume" in problems
    assert "hpc_driver" in problems
    assert "unknown TOOL 'vep.annotate'" in problems
    assert "gatk.haplotypecaller" in problems.split("known:")[1]
    assert "parameters.call" in problems
    assert "tool_versions.samtools" in problems


def test_missing_tool_config_file(tmp_path):
    with pytest.raises(ConfigurationError, match="not found"):
        load_tool_config(tmp_path / "nope.yaml")


def test_sample_config(sample_cfg):
    (patient,) = load_sample_config(data=sample_cfg)
    assert patient.patient_id == "P1"
    assert [s.sample_id for s in patient.normals] == ["P1-N"]
    assert patient.tumours[0].role == "tumour"
    assert len(patient.tumours[0].inputs) == 2


def test_sample_config_violations():
    data = {
        "P1": {"normal": {"S1": "/a.bam"}, "germline": {"S9": "/x.bam"}},
        "P2": {"tumour": {"S1": "/b.bam", "S2": ""}},
        "P3": {},
    }
    with pytest.raises(ConfigurationError) as exc:
        load_sample_config(data=data)

    problems = "\n".join(exc.value.violations)
    assert "unknown role(s) germline" in problems
    assert "S1 already used by patient P1" in problems
    assert "P2.tumour.S2" in problems
    assert "P3: no samples" in problems


@pytest.mark.parametrize("value,expected", [("Y", True), ("n", False), (True, True)])
def test_parse_flag(value, expected):
    assert parse_flag(value) is expected


def test_parse_flag_rejects_other_values():
    with pytest.raises(ValueError):
        parse_flag("yes")
