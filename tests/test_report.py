"""Unit tests for the JSON statistics export."""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path

from loadbench.models import JobSpec, Statistics
from loadbench.report import generate_json_report, statistics_payload


def test_statistics_payload_hides_sentinels() -> None:
    payload = statistics_payload(Statistics(requests_per_second=1500.5, other={"gc-heap-size": 12.0, "cpu": -1}))
    assert payload["requests_per_second"] == 1500.5
    assert payload["latency_99"] is None
    assert payload["socket_errors"] is None
    assert payload["other"] == {"gc-heap-size": 12.0, "cpu": None}


def test_statistics_payload_keeps_zero_counts() -> None:
    payload = statistics_payload(Statistics(socket_errors=0, bad_responses=0))
    assert payload["socket_errors"] == 0
    assert payload["bad_responses"] == 0


def test_generate_json_report(tmp_path: Path, job: JobSpec) -> None:
    stats = Statistics(requests_per_second=100000.12, latency_50=1.1).with_metadata(job)
    out = generate_json_report(
        tmp_path / "out" / "report.json",
        stats,
        job,
        generated_at=datetime(2026, 5, 6, 7, 8, 9, tzinfo=timezone.utc),
    )
    assert out.exists()
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["generated_at"] == "2026-05-06T07:08:09Z"
    assert data["job_id"] == "job-1"
    assert data["job"].startswith("[ID:job-1 ")
    assert data["statistics"]["requests_per_second"] == 100000.12
    assert data["statistics"]["latency_90"] is None
    assert data["statistics"]["scenario"] == "Plaintext"
    assert data["statistics"]["headers"] == {"Host": "localhost", "Accept": "text/plain"}


def test_generate_json_report_without_job(tmp_path: Path) -> None:
    out = generate_json_report(tmp_path / "report.json", Statistics())
    data = json.loads(out.read_text(encoding="utf-8"))
    assert data["job_id"] is None
    assert data["job"] is None
    assert all(v is None for k, v in data["statistics"].items() if k.startswith("latency"))
