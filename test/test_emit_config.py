import yaml

from swell.emit_config import emit_config, main, write_manifest
from swell.utils.log import RunLog


def _finals(tmp_path):
    done = tmp_path / "P1-T_filtered.vcf"
    done.write_text("##fileformat=VCFv4.1\n")
    empty = tmp_path / "P1-T2_filtered.vcf"
    empty.write_text("")
    return {"P1": {"tumour": {"P1-T": str(done), "P1-T2": str(empty)}},
            "P2": {"tumour": {"P2-T": str(tmp_path / "never_written.vcf")}}}


def test_only_finished_artifacts_are_listed(tmp_path, capsys):
    manifest = write_manifest(tmp_path / "logs" / "output_manifest.json", _finals(tmp_path))
    out = tmp_path / "output_config.yaml"

    emit_config(manifest, out, RunLog())

    data = yaml.safe_load(out.read_text())
    assert data == {"P1": {"tumour": {"P1-T": str(tmp_path / "P1-T_filtered.vcf")}}}
    printed = capsys.readouterr().out
    assert "P1-T2" in printed and "P2-T" in printed and "WARNING" in printed


def test_output_reads_as_a_sample_config(tmp_path):
    from swell.config import load_sample_config

    manifest = write_manifest(tmp_path / "m.json", _finals(tmp_path))
    out = tmp_path / "output_config.yaml"
    assert main(["--manifest", str(manifest), "--output", str(out)]) == 0

    (patient,) = load_sample_config(out)
    assert patient.patient_id == "P1"
    assert patient.tumours[0].inputs == (str(tmp_path / "P1-T_filtered.vcf"),)
