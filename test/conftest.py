from __future__ import annotations
from typing import List

import pytest

from swell.errors import SubmissionError
from swell.executor import SchedulerDriver


class RecordingDriver(SchedulerDriver):
    """Backend double: hands out numeric ids and remembers every call."""
    NAME = "recording"

    def __init__(self, log_dir, fail_on=()):
        super().__init__(log_dir)
        self.calls: List[dict] = []
        self.fail_on = set(fail_on)
        self._next = 100

    def _submit(self, script_path, deps, after):
        if script_path.stem in self.fail_on:
            raise SubmissionError(f"sbatch: rejected {script_path.name}")
        self._next += 1
        jid = str(self._next)
        self.calls.append({"name": script_path.stem, "script": script_path,
                           "deps": list(deps), "after": after, "id": jid})
        return jid

    def accounting_command(self, job_ids, outfile):
        return f"echo {','.join(job_ids)} >> {outfile}"

    def query_accounting(self, job_ids):
        return [{"JobID": j, "State": "COMPLETED"} for j in job_ids]

    def call(self, name):
        return next(c for c in self.calls if c["name"] == name)


@pytest.fixture
def recording_driver(tmp_path):
    return RecordingDriver(tmp_path / "driver_logs")


@pytest.fixture
def fastqs(tmp_path):
    data = tmp_path / "data"
    data.mkdir()
    paths = {}
    for sid in ("P1-N", "P1-T"):
        r1, r2 = data / f"{sid}_R1.fastq.gz", data / f"{sid}_R2.fastq.gz"
        r1.write_text("@r\nACGT\n+\nIIII\n")
        r2.write_text("@r\nACGT\n+\nIIII\n")
        paths[sid] = [str(r1), str(r2)]
    return paths


@pytest.fixture
def tool_cfg(tmp_path):
    """align -> call, the two step pipeline used across the workflow tests."""
    return {
        "project_name": "demo",
        "output_dir": str(tmp_path / "out"),
        "reference": "/refs/hg38.fa",
        "hpc_driver": "slurm",
        "resume": "N",
        "dry_run": "N",
        "del_intermediates": "Y",
        "create_output_yaml": "N",
        "dbsnp": "/refs/dbsnp.vcf.gz",
        "tool_versions": {"bwa": "0.7.17", "samtools": "1.17", "gatk": "4.4.0.0"},
        "TASK_LIST": [
            {"align": {"TOOL": "bwa.mem", "PARAMS": {"platform": "ILLUMINA"}}},
            {"call": {"TOOL": "gatk.haplotypecaller"}},
        ],
        "parameters": {
            "align": {"time": "24:00:00", "mem": "16G", "cpus": 8},
            "call": {"time": "48:00:00", "mem": "8G", "cpus": 1, "java_mem": "6g"},
        },
    }


@pytest.fixture
def sample_cfg(fastqs):
    return {"P1": {"normal": {"P1-N": fastqs["P1-N"]}, "tumour": {"P1-T": fastqs["P1-T"]}}}
