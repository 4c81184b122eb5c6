"""YAML configuration loaders for worker settings and job specifications."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml

from .exceptions import LoadbenchConfigError
from .logging_config import get_logger
from .models import (
    DEFAULT_DIAGNOSTIC_DIMENSIONS,
    Attachment,
    Counter,
    JobMetadata,
    JobSpec,
    WorkerSettings,
)

logger = get_logger("config")


def _read_yaml_mapping(path: str | Path, kind: str) -> dict[str, Any]:
    p = Path(path)
    if not p.exists():
        raise LoadbenchConfigError(f"{kind} file not found: {path}", context={"path": str(path)})

    try:
        raw = yaml.safe_load(p.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        logger.exception("Failed to parse %s file", kind.lower())
        raise LoadbenchConfigError(
            f"Invalid YAML syntax in {kind.lower()} file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e
    except OSError as e:
        logger.exception("Failed to read %s file", kind.lower())
        raise LoadbenchConfigError(
            f"Cannot read {kind.lower()} file: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise LoadbenchConfigError(
            f"{kind} must be a YAML object/dictionary",
            context={"path": str(path), "actual_type": type(raw).__name__},
        )
    return raw


def validate_settings(s: WorkerSettings) -> None:
    """Validate WorkerSettings bounds. Raises LoadbenchConfigError if invalid."""
    if s.first_request_timeout <= 0:
        raise LoadbenchConfigError("first_request_timeout must be > 0")
    if s.latency_timeout <= 0:
        raise LoadbenchConfigError("latency_timeout must be > 0")
    if s.latency_probes < 0:
        raise LoadbenchConfigError("latency_probes must be >= 0")
    if s.retries < 0:
        raise LoadbenchConfigError("retries must be >= 0")
    if s.retry_delay < 0:
        raise LoadbenchConfigError("retry_delay must be >= 0")
    if not s.executable.strip():
        raise LoadbenchConfigError("executable must not be empty")
    if not s.table.strip():
        raise LoadbenchConfigError("table must not be empty")


def load_settings(path: str | Path) -> WorkerSettings:
    """Load worker settings from a YAML file.

    Args:
        path: Path to YAML settings file

    Returns:
        Validated WorkerSettings instance

    Raises:
        LoadbenchConfigError: If file not found, invalid YAML, or validation fails
    """
    raw = _read_yaml_mapping(path, "Settings")
    try:
        settings = WorkerSettings(
            scripts_root=str(raw.get("scripts_root", ".")),
            executable=str(raw.get("executable", "wrk2")),
            line_buffer=bool(raw.get("line_buffer", True)),
            first_request_timeout=float(raw.get("first_request_timeout", 5.0)),
            latency_timeout=float(raw.get("latency_timeout", 2.0)),
            latency_probes=int(raw.get("latency_probes", 10)),
            retries=int(raw.get("retries", 5)),
            retry_delay=float(raw.get("retry_delay", 5.0)),
            database=str(raw.get("database", ".loadbench/metrics.duckdb")),
            table=str(raw.get("table", "Benchmarks")),
            counters=_parse_counters(raw.get("counters")),
            diagnostic_dimensions=tuple(
                str(d) for d in raw.get("diagnostic_dimensions", DEFAULT_DIAGNOSTIC_DIMENSIONS)
            ),
        )
    except (TypeError, ValueError) as e:
        raise LoadbenchConfigError(
            f"Invalid settings value: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    validate_settings(settings)
    logger.debug("Loaded settings: executable=%s, table=%s, counters=%d", settings.executable, settings.table, len(settings.counters))
    return settings


def _parse_counters(raw: Any) -> tuple[Counter, ...]:
    if not raw:
        return ()
    if not isinstance(raw, list):
        raise TypeError("counters must be a list")
    counters = []
    for entry in raw:
        if not isinstance(entry, dict) or "name" not in entry:
            raise ValueError(f"counter entry must have a name: {entry!r}")
        name = str(entry["name"])
        counters.append(Counter(name=name, display_name=str(entry.get("display_name") or name)))
    return tuple(counters)


def validate_job(job: JobSpec) -> None:
    """Validate a JobSpec. Raises LoadbenchConfigError if invalid."""
    if not job.url.strip():
        raise LoadbenchConfigError("url must not be empty")
    if job.connections < 1:
        raise LoadbenchConfigError("connections must be >= 1")
    if job.threads < 1:
        raise LoadbenchConfigError("threads must be >= 1")
    if job.duration <= 0:
        raise LoadbenchConfigError("duration must be > 0")
    if job.timeout <= 0:
        raise LoadbenchConfigError("timeout must be > 0")
    try:
        depth = job.effective_pipeline_depth()
    except ValueError as e:
        raise LoadbenchConfigError(f"PipelineDepth must be an integer: {e}", original_error=e) from e
    if depth is not None and depth > 0 and not job.script_name:
        raise LoadbenchConfigError(
            "A script name must be present when the pipeline depth is larger than 0",
            context={"pipeline_depth": depth},
        )


def load_job(path: str | Path) -> JobSpec:
    """Load a job specification from a YAML file. Raises LoadbenchConfigError on invalid job."""
    raw = _read_yaml_mapping(path, "Job")
    if not raw.get("url"):
        raise LoadbenchConfigError("Job must define a url", context={"path": str(path)})

    meta_raw = raw.get("metadata") or {}
    try:
        metadata = JobMetadata(**{k: str(v) for k, v in meta_raw.items()})
        attachments = tuple(
            Attachment(filename=str(a["filename"]), temp_path=str(a["temp_path"]))
            for a in (raw.get("attachments") or [])
        )
        pipeline_depth = raw.get("pipeline_depth")
        rate = raw.get("rate")
        job = JobSpec(
            url=str(raw["url"]),
            query=str(raw.get("query", "")),
            method=str(raw.get("method", "GET")).upper(),
            headers={str(k): str(v) for k, v in (raw.get("headers") or {}).items()},
            connections=int(raw.get("connections", 256)),
            threads=int(raw.get("threads", 32)),
            duration=int(raw.get("duration", 15)),
            timeout=int(raw.get("timeout", 2)),
            pipeline_depth=int(pipeline_depth) if pipeline_depth is not None else None,
            rate=str(rate) if rate is not None else None,
            attachments=attachments,
            client_properties={str(k): str(v) for k, v in (raw.get("client_properties") or {}).items()},
            skip_startup_latencies=bool(raw.get("skip_startup_latencies", False)),
            metadata=metadata,
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise LoadbenchConfigError(
            f"Invalid job value: {e}",
            context={"path": str(path)},
            original_error=e,
        ) from e

    validate_job(job)
    logger.debug("Loaded job %s: url=%s, connections=%s, duration=%ss", job.job_id, job.server_url, job.connections, job.duration)
    return job
