"""Data models for the loadbench job worker.

Jobs and statistics are frozen dataclasses: a JobSpec does not change once
execution starts and a Statistics record is built once per job after parsing.
Numeric dimensions use -1 (SENTINEL) for "not measured".
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Mapping

SENTINEL = -1.0

# Client property keys understood by the command builder
SCRIPT_NAME_PROPERTY = "ScriptName"
PIPELINE_DEPTH_PROPERTY = "PipelineDepth"
RATE_PROPERTY = "rate"


class ClientState(str, Enum):
    """Lifecycle of a load-generation job."""

    NOT_STARTED = "not_started"
    STARTING = "starting"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    DELETED = "deleted"

    @property
    def is_terminal(self) -> bool:
        return self in _TERMINAL_STATES

    def can_transition_to(self, target: "ClientState") -> bool:
        if self.is_terminal:
            return False
        if target is ClientState.DELETED:
            return True
        return target in _TRANSITIONS.get(self, ())


_TERMINAL_STATES = frozenset({ClientState.COMPLETED, ClientState.FAILED, ClientState.DELETED})

_TRANSITIONS: dict[ClientState, tuple[ClientState, ...]] = {
    ClientState.NOT_STARTED: (ClientState.STARTING,),
    ClientState.STARTING: (ClientState.RUNNING, ClientState.FAILED),
    ClientState.RUNNING: (ClientState.COMPLETED, ClientState.FAILED),
}


@dataclass(frozen=True, slots=True)
class Attachment:
    """Custom script shipped with a job: logical file name + temporary upload path."""

    filename: str
    temp_path: str


@dataclass(frozen=True, slots=True)
class JobMetadata:
    """Descriptive labels of the server side of a job, persisted with every metric row."""

    scenario: str = ""
    hardware: str = ""
    hardware_version: str = ""
    operating_system: str = ""
    runtime_version: str = ""
    scheme: str = "http"
    web_host: str = ""
    path: str = ""


def _new_job_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True, slots=True)
class JobSpec:
    """A single load-generation job."""

    url: str
    connections: int
    threads: int
    duration: int  # seconds
    timeout: int = 2  # seconds, per request
    query: str = ""
    method: str = "GET"
    headers: Mapping[str, str] = field(default_factory=dict)
    pipeline_depth: int | None = None
    rate: str | None = None
    attachments: tuple[Attachment, ...] = ()
    client_properties: Mapping[str, str] = field(default_factory=dict)
    skip_startup_latencies: bool = False
    metadata: JobMetadata = field(default_factory=JobMetadata)
    job_id: str = field(default_factory=_new_job_id)

    @property
    def server_url(self) -> str:
        return f"{self.url}{self.query}"

    @property
    def script_name(self) -> str | None:
        return self.client_properties.get(SCRIPT_NAME_PROPERTY) or None

    def effective_pipeline_depth(self) -> int | None:
        """Pipeline depth from the explicit field, else from client properties."""
        if self.pipeline_depth is not None:
            return self.pipeline_depth
        raw = self.client_properties.get(PIPELINE_DEPTH_PROPERTY)
        if raw is None or str(raw).strip() == "":
            return None
        return int(raw)

    def effective_rate(self) -> str | None:
        if self.rate:
            return self.rate
        return self.client_properties.get(RATE_PROPERTY) or None


@dataclass(frozen=True, slots=True)
class Statistics:
    """Canonical metric set of one job.

    Client dimensions come from the generator report and calibration; server
    dimensions (startup, build, published size, working set, cpu) are supplied
    by the caller when known.
    """

    requests_per_second: float = SENTINEL
    latency_average: float = SENTINEL
    latency_50: float = SENTINEL
    latency_75: float = SENTINEL
    latency_90: float = SENTINEL
    latency_99: float = SENTINEL
    max_latency: float = SENTINEL
    socket_errors: float = SENTINEL
    bad_responses: float = SENTINEL
    total_requests: float = SENTINEL
    duration_ms: float = SENTINEL
    first_request: float = SENTINEL
    latency_no_load: float = SENTINEL
    startup_main: float = SENTINEL
    build_time: float = SENTINEL
    published_size: float = SENTINEL
    working_set: float = SENTINEL
    cpu: float = SENTINEL
    other: Mapping[str, float] = field(default_factory=dict)
    # Metadata
    scenario: str = ""
    hardware: str = ""
    operating_system: str = ""
    scheme: str = ""
    web_host: str = ""
    path: str = ""
    method: str = ""
    headers: Mapping[str, str] = field(default_factory=dict)

    def with_metadata(self, job: JobSpec) -> "Statistics":
        """Copy with the job's descriptive labels applied."""
        return replace(
            self,
            scenario=job.metadata.scenario,
            hardware=job.metadata.hardware,
            operating_system=job.metadata.operating_system,
            scheme=job.metadata.scheme,
            web_host=job.metadata.web_host,
            path=job.metadata.path,
            method=job.method.upper(),
            headers=dict(job.headers),
        )


@dataclass(frozen=True, slots=True)
class Counter:
    """Entry of the counter catalog: key in Statistics.other and the dimension it is stored as."""

    name: str
    display_name: str


@dataclass(frozen=True, slots=True)
class MetricRow:
    """One persisted dimension of one job."""

    date_time: datetime
    session: str
    description: str
    scenario: str
    hardware: str
    hardware_version: str
    operating_system: str
    runtime_version: str
    scheme: str
    web_host: str
    client_threads: int
    connections: int
    duration: int
    pipeline_depth: int | None
    path: str | None
    method: str
    headers: str | None
    dimension: str
    value: float


# Dimensions not written for long-running jobs. Older wrk2 serializers also
# dropped "Latency (ms)" (no-load latency); add it through
# WorkerSettings.diagnostic_dimensions to get that behavior.
DEFAULT_DIAGNOSTIC_DIMENSIONS: tuple[str, ...] = (
    "Startup Main (ms)",
    "Build Time (ms)",
    "Published Size (KB)",
    "First Request (ms)",
)


@dataclass(slots=True)
class WorkerSettings:
    """Worker configuration from YAML. Defaults match the wrk2 worker's fixed constants."""

    scripts_root: str = "."
    executable: str = "wrk2"
    line_buffer: bool = True
    first_request_timeout: float = 5.0
    latency_timeout: float = 2.0
    latency_probes: int = 10
    retries: int = 5
    retry_delay: float = 5.0
    database: str = ".loadbench/metrics.duckdb"
    table: str = "Benchmarks"
    counters: tuple[Counter, ...] = ()
    diagnostic_dimensions: tuple[str, ...] = DEFAULT_DIAGNOSTIC_DIMENSIONS
