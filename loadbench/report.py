"""Machine-readable JSON export of a job's statistics."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import orjson

from .command import describe_job
from .models import SENTINEL, JobSpec, Statistics


def statistics_payload(statistics: Statistics) -> dict[str, Any]:
    """Statistics as a plain dict; unmeasured dimensions become None."""
    payload: dict[str, Any] = {}
    for key, value in asdict(statistics).items():
        if isinstance(value, float) and value == SENTINEL:
            payload[key] = None
        else:
            payload[key] = value
    payload["other"] = {k: (None if v == SENTINEL else v) for k, v in statistics.other.items()}
    return payload


def generate_json_report(
    output_path: str | Path,
    statistics: Statistics,
    job: JobSpec | None = None,
    generated_at: datetime | None = None,
) -> Path:
    """Write statistics (and the job summary when given) as indented JSON."""
    generated = generated_at or datetime.now(timezone.utc)
    payload: dict[str, Any] = {
        "generated_at": generated.strftime("%Y-%m-%dT%H:%M:%SZ"),
        "job_id": job.job_id if job else None,
        "job": describe_job(job) if job else None,
        "statistics": statistics_payload(statistics),
    }
    out = Path(output_path)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    return out
