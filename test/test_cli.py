import pytest
import yaml

from swell.cli import build_argparser, main


@pytest.fixture
def config_files(tmp_path, tool_cfg, sample_cfg):
    tool = tmp_path / "tool_config.yaml"
    tool.write_text(yaml.safe_dump(tool_cfg))
    samples = tmp_path / "sample_config.yaml"
    samples.write_text(yaml.safe_dump(sample_cfg))
    return tool, samples


def test_yes_no_switches():
    args = build_argparser().parse_args(["run", "-t", "t.yaml", "-d", "d.yaml", "--resume", "y", "--dry-run", "N"])
    assert args.resume is True and args.dry_run is False
    with pytest.raises(SystemExit):
        build_argparser().parse_args(["run", "-t", "t.yaml", "-d", "d.yaml", "--resume", "maybe"])


def test_dry_run_from_command_line(config_files, tmp_path, capsys):
    tool, samples = config_files
    out = tmp_path / "cli_out"

    rc = main(["run", "-t", str(tool), "-d", str(samples), "-o", str(out), "-c", "dry", "--dry-run", "Y"])

    assert rc == 0
    (run_dir,) = [p for p in out.iterdir() if p.name.startswith("dryrun_")]
    assert (run_dir / "logs" / "run_align_P1-N.sh").exists()
    assert (run_dir / "logs" / "run_demo_pipeline_dryrun.log").exists()
    assert "FINAL OUTPUT" in capsys.readouterr().out


def test_configuration_problems_exit_non_zero(config_files, tmp_path, capsys):
    tool, samples = config_files
    bad = tmp_path / "bad.yaml"
    bad.write_text("project_name: demo\nTASK_LIST: []\n")

    assert main(["run", "-t", str(bad), "-d", str(samples), "-c", "dry"]) == 1
    err = capsys.readouterr().err
    assert "[SWELL] ERROR:" in err and "reference is required" in err


def test_missing_config_file(tmp_path, capsys):
    assert main(["run", "-t", str(tmp_path / "nope.yaml"), "-d", str(tmp_path / "nope2.yaml")]) == 1
    assert "config file not found" in capsys.readouterr().err


def test_metrics_summary(tmp_path, capsys):
    path = tmp_path / "job_metrics_1.out"
    path.write_text(
        "JobID|JobName|State|ExitCode|Elapsed\n"
        "101|run_align_P1-N|COMPLETED|0:0|00:10:00\n"
        "102|run_call_P1-N|FAILED|1:0|00:00:30\n"
    )

    assert main(["metrics", str(path), "--all"]) == 0
    out = capsys.readouterr().out
    assert "COMPLETED" in out and "FAILED" in out
    assert "run_call_P1-N" in out


def test_metrics_empty_file(tmp_path, capsys):
    path = tmp_path / "job_metrics_1.out"
    path.write_text("")
    assert main(["metrics", str(path)]) == 0
    assert "no accounting rows" in capsys.readouterr().out
