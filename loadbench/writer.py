"""Per-dimension metric persistence with a bounded retry policy.

Each populated dimension of a Statistics record becomes one MetricRow. Rows are
written one at a time; a row that still fails after the last retry aborts the
rest of the job's rows. Rows already written stay written.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Awaitable, Callable, Sequence

import orjson
from tenacity import AsyncRetrying, before_sleep_log, stop_after_attempt, wait_fixed

from .logging_config import get_logger
from .models import (
    DEFAULT_DIAGNOSTIC_DIMENSIONS,
    SENTINEL,
    Counter,
    JobSpec,
    MetricRow,
    Statistics,
    WorkerSettings,
)
from .storage import MetricStore

logger = get_logger("writer")

DEFAULT_RETRIES = 5
DEFAULT_RETRY_DELAY_SEC = 5.0

# (dimension name, Statistics attribute), in write order
DIMENSIONS: tuple[tuple[str, str], ...] = (
    ("RequestsPerSecond", "requests_per_second"),
    ("Startup Main (ms)", "startup_main"),
    ("Build Time (ms)", "build_time"),
    ("Published Size (KB)", "published_size"),
    ("First Request (ms)", "first_request"),
    ("WorkingSet (MB)", "working_set"),
    ("CPU", "cpu"),
    ("Latency (ms)", "latency_no_load"),
    ("LatencyAverage (ms)", "latency_average"),
    ("Latency50Percentile (ms)", "latency_50"),
    ("Latency75Percentile (ms)", "latency_75"),
    ("Latency90Percentile (ms)", "latency_90"),
    ("Latency99Percentile (ms)", "latency_99"),
    ("MaxLatency (ms)", "max_latency"),
    ("SocketErrors", "socket_errors"),
    ("BadResponses", "bad_responses"),
    ("TotalRequests", "total_requests"),
    ("Duration (ms)", "duration_ms"),
)


async def retry_on_exception(
    operation: Callable[[], Awaitable[Any]],
    retries: int = DEFAULT_RETRIES,
    delay: float = DEFAULT_RETRY_DELAY_SEC,
) -> Any:
    """Run operation, retrying up to `retries` more times with a fixed delay.

    The last attempt's exception propagates unchanged.
    """
    async for attempt in AsyncRetrying(
        stop=stop_after_attempt(retries + 1),
        wait=wait_fixed(delay),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    ):
        with attempt:
            return await operation()


def serialize_headers(headers: dict[str, str]) -> str | None:
    if not headers:
        return None
    return orjson.dumps(headers).decode("utf-8")


class MetricsWriter:
    """Writes Statistics records to a table of a MetricStore."""

    def __init__(
        self,
        store: MetricStore,
        table: str,
        counters: Sequence[Counter] = (),
        retries: int = DEFAULT_RETRIES,
        retry_delay: float = DEFAULT_RETRY_DELAY_SEC,
        diagnostic_dimensions: Sequence[str] = DEFAULT_DIAGNOSTIC_DIMENSIONS,
    ) -> None:
        self.store = store
        self.table = table
        self.counters = tuple(counters)
        self.retries = retries
        self.retry_delay = retry_delay
        self.diagnostic_dimensions = frozenset(diagnostic_dimensions)
        self._initialized = False

    @classmethod
    def from_settings(cls, settings: WorkerSettings) -> "MetricsWriter":
        """Writer on the settings' database, table, counter catalog and retry policy."""
        return cls(
            MetricStore(Path(settings.database)),
            settings.table,
            counters=settings.counters,
            retries=settings.retries,
            retry_delay=settings.retry_delay,
            diagnostic_dimensions=settings.diagnostic_dimensions,
        )

    async def initialize(self) -> None:
        """Create the table if absent (once per writer)."""
        if self._initialized:
            return
        await asyncio.to_thread(self.store.ensure_table, self.table)
        self._initialized = True

    def dimension_values(self, statistics: Statistics, long_running: bool) -> list[tuple[str, float]]:
        """Dimensions to persist, in write order: measured values only."""
        selected: list[tuple[str, float]] = []
        for dimension, attribute in DIMENSIONS:
            value = getattr(statistics, attribute)
            if value == SENTINEL:
                continue
            if long_running and dimension in self.diagnostic_dimensions:
                continue
            selected.append((dimension, float(value)))

        for counter in self.counters:
            value = statistics.other.get(counter.name)
            if value is None or value == SENTINEL:
                continue
            selected.append((counter.display_name, float(value)))
        return selected

    def build_rows(
        self,
        statistics: Statistics,
        job: JobSpec,
        session: str,
        description: str,
        long_running: bool = False,
        now: datetime | None = None,
    ) -> list[MetricRow]:
        utc_now = now or datetime.now(timezone.utc)
        meta = job.metadata
        headers = serialize_headers(dict(job.headers))
        return [
            MetricRow(
                date_time=utc_now,
                session=session,
                description=description,
                scenario=meta.scenario,
                hardware=meta.hardware,
                hardware_version=meta.hardware_version,
                operating_system=meta.operating_system,
                runtime_version=meta.runtime_version,
                scheme=meta.scheme.lower(),
                web_host=meta.web_host,
                client_threads=job.threads,
                connections=job.connections,
                duration=job.duration,
                pipeline_depth=job.effective_pipeline_depth(),
                path=meta.path or None,
                method=job.method.upper(),
                headers=headers,
                dimension=dimension,
                value=value,
            )
            for dimension, value in self.dimension_values(statistics, long_running)
        ]

    async def _write_row(self, row: MetricRow) -> None:
        await asyncio.to_thread(self.store.insert, self.table, row)

    async def write(
        self,
        statistics: Statistics,
        job: JobSpec,
        session: str = "",
        description: str = "",
        long_running: bool = False,
    ) -> int:
        """Persist every measured dimension. Returns the number of rows written.

        Raises the store's error once a row exhausts its retries; rows after it
        are not written.
        """
        await self.initialize()
        rows = self.build_rows(statistics, job, session, description, long_running)
        written = 0
        for row in rows:
            await retry_on_exception(lambda row=row: self._write_row(row), self.retries, self.retry_delay)
            written += 1
        logger.info("Wrote %d dimensions for job %s to %s", written, job.job_id, self.table)
        return written
