import subprocess

from swell.cleanup import CleanupPlanner, intermediates_for
from swell.errors import CleanupGuardFailure


def _run(script_text, tmp_path):
    script = tmp_path / "cleanup.sh"
    script.write_text("set -uo pipefail\n" + script_text)
    return subprocess.run(["bash", str(script)], capture_output=True, text=True)


def _layout(tmp_path):
    inter = tmp_path / "P1-N.bwa.sorted.bam"
    inter.write_text("bam")
    side = tmp_path / "P1-N.bwa.sorted.bam.md5"
    side.write_text("abc  bam\n")
    temp = tmp_path / "TEMP"
    temp.mkdir()
    (temp / "scratch").write_text("x")
    final = tmp_path / "P1-N.g.vcf.gz"
    return inter, side, temp, final


def test_deletes_intermediates_when_finals_present(tmp_path):
    inter, side, temp, final = _layout(tmp_path)
    final.write_text("vcf")
    (tmp_path / "P1-N.g.vcf.gz.md5").write_text("abc  vcf\n")

    script = CleanupPlanner.build([str(final), f"{final}.md5"], [str(inter), str(side), str(temp)])
    proc = _run(script, tmp_path)

    assert proc.returncode == 0
    assert not inter.exists() and not temp.exists()
    assert side.exists()  # keeps resume able to skip the step
    assert final.exists()


def test_missing_final_takes_warning_branch(tmp_path):
    inter, side, temp, final = _layout(tmp_path)

    script = CleanupPlanner.build([str(final), f"{final}.md5"], [str(inter), str(temp)])
    proc = _run(script, tmp_path)

    assert proc.returncode == 0
    assert CleanupGuardFailure.MESSAGE in proc.stderr
    assert inter.exists() and temp.exists()


def test_empty_final_counts_as_missing(tmp_path):
    inter, _, _, final = _layout(tmp_path)
    final.write_text("")

    proc = _run(CleanupPlanner.build([str(final)], [str(inter)]), tmp_path)

    assert inter.exists()
    assert "WARNING" in proc.stderr


def test_no_final_outputs_never_deletes(tmp_path):
    inter, *_ = _layout(tmp_path)
    script = CleanupPlanner.build([], [str(inter)])
    assert "rm " not in script
    _run(script, tmp_path)
    assert inter.exists()


def test_finals_are_never_in_the_removal_list():
    script = CleanupPlanner.build(["/o/final.vcf"], ["/o/final.vcf", "/o/tmp.bam"])
    rm_line = next(ln for ln in script.splitlines() if "rm -rf" in ln)
    assert "/o/tmp.bam" in rm_line and "final.vcf" not in rm_line


def test_intermediates_exclude_last_step():
    chain = [["/o/a.bam", "/o/a.bai"], ["/o/b.bam"], ["/o/c.vcf"]]
    assert intermediates_for(chain) == ["/o/a.bam", "/o/a.bai", "/o/b.bam"]
