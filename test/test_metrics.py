from swell.context import RunContext
from swell.model import Resources
from swell.graph import JobGraph
from swell.metrics import (
    MetricsCollector, elapsed_seconds, next_metrics_suffix, parse_sacct, reserve_metrics_file,
    rss_mb, summarise_metrics, summary_by_state,
)

SACCT = """JobID|JobName|State|ExitCode|Elapsed|MaxRSS|ReqMem|AllocCPUS|NodeList
101|run_align_P1-N|COMPLETED|0:0|01:02:03||16G|8|node1
101.batch|batch|COMPLETED|0:0|01:02:03|2048K||8|node1
JobID|JobName|State|ExitCode|Elapsed|MaxRSS|ReqMem|AllocCPUS|NodeList
102|run_call_P1-N|FAILED|1:0|1-00:00:10|1G|8G|1|node2
"""


def test_next_suffix_skips_past_gaps(tmp_path):
    (tmp_path / "job_metrics_1.out").touch()
    (tmp_path / "job_metrics_3.out").touch()
    (tmp_path / "job_metrics_x.out").touch()
    assert next_metrics_suffix(tmp_path) == 4


def test_reserve_claims_distinct_increasing_files(tmp_path):
    first = reserve_metrics_file(tmp_path)
    second = reserve_metrics_file(tmp_path)
    assert first[0] < second[0]
    assert first[1].exists() and second[1].exists()


def test_parse_sacct_drops_repeated_headers():
    df = parse_sacct(SACCT)
    assert list(df["JobID"]) == ["101", "101.batch", "102"]


def test_summarise_and_group(tmp_path):
    path = tmp_path / "job_metrics_1.out"
    path.write_text(SACCT)

    df = summarise_metrics(path)
    by_state = summary_by_state(df)

    assert df.loc[df["JobID"] == "102", "elapsed_sec"].item() == 86410
    assert by_state.loc["COMPLETED", "jobs"] == 2
    assert by_state.loc["FAILED", "max_rss_mb"] == 1024.0


def test_unit_helpers():
    assert elapsed_seconds("03:04") == 184
    assert elapsed_seconds("") is None
    assert rss_mb("512M") == 512.0
    assert rss_mb("") is None


def test_collector_appends_accounting_for_every_id(tmp_path, recording_driver):
    ctx = RunContext.create(tmp_path)
    graph = JobGraph(ctx, recording_driver)
    collector = MetricsCollector(graph, ctx.metrics_file, ctx.run_count)

    assert collector.collect([]) is None

    a = graph.add_job("a", "true", collector_resources())
    b = graph.add_job("b", "true", collector_resources())
    job = collector.collect([a.job_id, b.job_id, ""])

    assert job.name == "output_job_metrics_1"
    assert job.dependencies == (a.job_id, b.job_id)
    assert job.after == "any"
    assert str(ctx.metrics_file) in job.step.command
    assert graph.fan_in("run")[-1] == job.job_id


def collector_resources():
    return Resources(**MetricsCollector.RESOURCES)
