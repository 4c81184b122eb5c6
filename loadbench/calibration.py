"""Pre-load latency calibration.

Before the load generator starts, a few single requests measure how the target
answers without load: the first request (cold path) and a "no load" latency
taken from the last of a series of warm-up probes. Calibration never fails a
job; an unmeasured value stays at the sentinel.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

import httpx

from .logging_config import get_logger
from .models import SENTINEL, JobSpec

logger = get_logger("calibration")

FIRST_REQUEST_TIMEOUT_SEC = 5.0
LATENCY_TIMEOUT_SEC = 2.0
LATENCY_PROBES = 10
NS_TO_MS = 1_000_000


@dataclass(frozen=True, slots=True)
class CalibrationResult:
    first_request_ms: float = SENTINEL
    no_load_latency_ms: float = SENTINEL


def create_client() -> httpx.AsyncClient:
    """Create the calibration HTTP client.

    Certificate checks are off (benchmark servers use self-signed certs) and
    the pool is capped at a single connection so probes reuse it.
    """
    return httpx.AsyncClient(
        verify=False,
        limits=httpx.Limits(max_connections=1, max_keepalive_connections=1),
        timeout=None,
    )


class Calibrator:
    """Measures first-request and no-load latency with an injected client."""

    def __init__(
        self,
        client: httpx.AsyncClient,
        first_request_timeout: float = FIRST_REQUEST_TIMEOUT_SEC,
        latency_timeout: float = LATENCY_TIMEOUT_SEC,
        probes: int = LATENCY_PROBES,
    ) -> None:
        self._client = client
        self.first_request_timeout = first_request_timeout
        self.latency_timeout = latency_timeout
        self.probes = probes

    async def _timed_request(self, job: JobSpec, timeout: float) -> float:
        """Send one request and return elapsed milliseconds. Raises asyncio.TimeoutError past the deadline."""
        start_ns = time.perf_counter_ns()
        response = await asyncio.wait_for(
            self._client.request(job.method, job.server_url, headers=dict(job.headers)),
            timeout=timeout,
        )
        elapsed_ms = (time.perf_counter_ns() - start_ns) / NS_TO_MS
        await response.aclose()
        return elapsed_ms

    async def measure(self, job: JobSpec) -> CalibrationResult:
        if job.skip_startup_latencies:
            return CalibrationResult()

        logger.info("Measuring first request latency on %s", job.server_url)
        first_request = SENTINEL
        try:
            first_request = await self._timed_request(job, self.first_request_timeout)
        except (asyncio.TimeoutError, httpx.TimeoutException):
            logger.warning("A timeout occurred while measuring the first request: %ss", self.first_request_timeout)
        except (httpx.HTTPError, OSError) as e:
            logger.warning("First request failed: %s", e)
        logger.info("%s ms", first_request)

        logger.info("Measuring subsequent requests latency")
        no_load = SENTINEL
        for _ in range(self.probes):
            try:
                # Keep the last measure; earlier probes are a warmup.
                no_load = await self._timed_request(job, self.latency_timeout)
            except (asyncio.TimeoutError, httpx.TimeoutException):
                logger.warning("A timeout occurred while measuring the latency, skipping ...")
                break
            except (httpx.HTTPError, OSError) as e:
                logger.warning("Latency probe failed: %s", e)
        logger.info("%s ms", no_load)

        return CalibrationResult(first_request_ms=first_request, no_load_latency_ms=no_load)
