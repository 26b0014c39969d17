import hashlib

from swell.utils.markers import (
    ArtifactMarker, Disposition, LocalFileSystem, MemoryFileSystem, ResumeGate, missing_paths,
)


def test_skip_only_when_resuming_and_sidecar_present():
    marker = ArtifactMarker("/out/P1-N.bam")
    fs = MemoryFileSystem()
    fs.write_marker(marker.path, "abc")
    gate = ResumeGate(fs)

    assert gate.should_run(marker, resume=True) is Disposition.SKIP
    assert gate.should_run(marker, resume=False) is Disposition.RUN


def test_raw_output_without_sidecar_is_rerun():
    # a truncated file from a killed job must not count as done
    marker = ArtifactMarker("/out/P1-N.bam")
    gate = ResumeGate(MemoryFileSystem({"/out/P1-N.bam": "partial"}))
    assert gate.should_run(marker, resume=True) is Disposition.RUN


def test_no_marker_always_runs():
    assert ResumeGate(MemoryFileSystem()).should_run(None, resume=True) is Disposition.RUN


def test_local_filesystem_marker(tmp_path):
    out = tmp_path / "calls.vcf"
    out.write_text("##fileformat=VCFv4.2\n")
    fs = LocalFileSystem()

    assert fs.read_checksum(str(out)) is None
    side = fs.write_marker(str(out))

    assert side == f"{out}.md5"
    assert fs.read_checksum(str(out)) == hashlib.md5(out.read_bytes()).hexdigest()
    assert ResumeGate(fs).should_run(ArtifactMarker(str(out)), resume=True) is Disposition.SKIP
    assert not (tmp_path / "calls.vcf.md5.partial").exists()


def test_missing_paths():
    fs = MemoryFileSystem({"/a": "x"})
    assert missing_paths(["/a", "/b"], fs) == ["/b"]
