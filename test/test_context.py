import pytest

from swell.context import RunContext, latest_run_dir
from swell.errors import DirectoryError

NOW = 1767225600.0  # fixed clock so run directory names collide on purpose


def test_fresh_run_creates_tree(tmp_path):
    ctx = RunContext.create(tmp_path / "out", now=NOW)

    assert ctx.output_dir.parent == (tmp_path / "out").resolve()
    assert ctx.output_dir.name.startswith("run_")
    assert ctx.log_dir.is_dir() and ctx.log_dir == ctx.output_dir / "logs"
    assert ctx.tmp_dir.is_dir()
    assert ctx.resumed_from is None
    assert ctx.as_triple() == (False, ctx.output_dir, ctx.log_dir)


def test_fresh_runs_never_share_a_directory(tmp_path):
    first = RunContext.create(tmp_path, now=NOW)
    second = RunContext.create(tmp_path, now=NOW)
    assert first.output_dir != second.output_dir
    assert second.output_dir.name == f"{first.output_dir.name}_2"


def test_resume_reuses_latest_run(tmp_path):
    RunContext.create(tmp_path, now=NOW)
    latest = RunContext.create(tmp_path, now=NOW + 60)

    resumed = RunContext.create(tmp_path, resume=True)

    assert resumed.output_dir == latest.output_dir
    assert resumed.resumed_from == latest.output_dir
    assert latest_run_dir(tmp_path.resolve()) == latest.output_dir


def test_resume_without_previous_run_starts_fresh(tmp_path):
    ctx = RunContext.create(tmp_path, resume=True, now=NOW)
    assert ctx.resumed_from is None
    assert ctx.output_dir.is_dir()


def test_resume_recreates_missing_subdirectories(tmp_path):
    first = RunContext.create(tmp_path, now=NOW)
    first.tmp_dir.rmdir()
    resumed = RunContext.create(tmp_path, resume=True)
    assert resumed.tmp_dir.is_dir()


def test_unwritable_location_is_fatal(tmp_path):
    blocker = tmp_path / "file"
    blocker.write_text("not a directory")
    with pytest.raises(DirectoryError):
        RunContext.create(blocker / "out")


def test_metrics_suffix_increases_across_runs_in_same_directory(tmp_path):
    first = RunContext.create(tmp_path, now=NOW)
    second = RunContext.create(tmp_path, resume=True)

    assert first.log_dir == second.log_dir
    assert (first.run_count, second.run_count) == (1, 2)
    assert first.metrics_file.name == "job_metrics_1.out"
    assert second.metrics_file.exists()


def test_dry_run_does_not_claim_metrics_file(tmp_path):
    ctx = RunContext.create(tmp_path, dry_run=True, now=NOW)
    assert not ctx.metrics_file.exists()
    assert ctx.run_log("demo").name == "run_demo_pipeline_dryrun.log"


def test_layout_helpers(tmp_path):
    ctx = RunContext.create(tmp_path, now=NOW)
    assert ctx.sample_dir("P1", "P1-N") == ctx.output_dir / "P1" / "P1-N"
    assert ctx.patient_tmp("P1") == ctx.tmp_dir / "P1"
    assert ctx.final_link_dir("P1") == ctx.output_root / "final_links" / "P1"
    assert ctx.run_log("demo").name == "run_demo_pipeline_1.log"


def test_dry_run_directory_is_never_resumed(tmp_path):
    real = RunContext.create(tmp_path, now=NOW)
    preview = RunContext.create(tmp_path, dry_run=True, now=NOW + 60)

    assert preview.output_dir.name.startswith("dryrun_")
    assert latest_run_dir(tmp_path.resolve()) == real.output_dir
    assert RunContext.create(tmp_path, resume=True).output_dir == real.output_dir


def test_discard_removes_only_fresh_directories(tmp_path):
    kept = RunContext.create(tmp_path, now=NOW)
    resumed = RunContext.create(tmp_path, resume=True)
    resumed.discard()
    assert kept.output_dir.is_dir()

    fresh = RunContext.create(tmp_path, now=NOW + 60)
    fresh.discard()
    assert not fresh.output_dir.exists()
    assert latest_run_dir(tmp_path.resolve()) == kept.output_dir
