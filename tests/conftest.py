"""Pytest fixtures for loadbench tests."""

from __future__ import annotations

import tempfile
from pathlib import Path

import pytest

from loadbench.models import JobMetadata, JobSpec

SAMPLE_REPORT = """Running 30s test @ http://10.0.0.102:5000/plaintext
  32 threads and 256 connections
  Thread calibration: mean lat.: 1.234ms, rate sampling interval: 10ms
  Thread Stats   Avg      Stdev     Max   +/- Stdev
    Latency     1.18ms  608.52us   9.87ms   71.15%
    Req/Sec     3.45k   450.12     5.67k    68.00%
  Latency Distribution (HdrHistogram - Recorded Latency)
 50.000%    1.10ms
 75.000%    1.50ms
 90.000%    1.95ms
 99.000%    3.12ms
 99.900%    5.80ms
 99.990%    8.90ms
 99.999%    9.80ms
100.000%    9.87ms

#[Mean    =        1.180, StdDeviation   =        0.609]
#[Max     =        9.872, Total count    =      2999872]
  3000000 requests in 30.00s, 366.21MB read
  Socket errors: connect 0, read 2, write 1, timeout 7
  Non-2xx or 3xx responses: 12
Requests/sec: 100000.12
Transfer/sec:     12.21MB
"""


@pytest.fixture
def sample_report() -> str:
    return SAMPLE_REPORT


@pytest.fixture
def job() -> JobSpec:
    return JobSpec(
        url="http://localhost:5000/plaintext",
        connections=256,
        threads=32,
        duration=15,
        timeout=2,
        headers={"Host": "localhost", "Accept": "text/plain"},
        metadata=JobMetadata(
            scenario="Plaintext",
            hardware="Physical",
            hardware_version="HPE Gen10",
            operating_system="Linux",
            runtime_version="8.0.0",
            scheme="Http",
            web_host="Kestrel",
            path="/plaintext",
        ),
        job_id="job-1",
    )


@pytest.fixture
def tmp_path_settings() -> Path:
    """Write a minimal worker settings file to a temp file."""
    content = """
executable: wrk2
first_request_timeout: 3
latency_timeout: 1.5
latency_probes: 4
retries: 2
retry_delay: 0.5
table: PerfResults
counters:
  - name: gc-heap-size
    display_name: GC Heap Size (MB)
  - name: threadpool-queue-length
"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(content)
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)


@pytest.fixture
def tmp_path_job() -> Path:
    """Write a job specification with headers and client properties to a temp file."""
    content = """
url: http://10.0.0.102:5000/json
query: "?id=1"
method: get
headers:
  Host: 10.0.0.102
  Connection: keep-alive
connections: 128
threads: 16
duration: 30
timeout: 5
client_properties:
  ScriptName: pipeline
  PipelineDepth: "16"
metadata:
  scenario: Json
  hardware: Cloud
  operating_system: Linux
  web_host: Kestrel
"""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        f.write(content)
        path = Path(f.name)
    yield path
    path.unlink(missing_ok=True)
