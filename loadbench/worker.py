"""Job execution engine: calibrate, run wrk2, parse its report, persist.

A Wrk2Worker drives exactly one job:

    not_started -> starting -> running -> completed | failed

start_job() calibrates and spawns the generator, wait_for_completion() parses
the drained output once the process has exited and both streams are closed.
"""

from __future__ import annotations

from dataclasses import replace
from pathlib import Path

import httpx

from .calibration import CalibrationResult, Calibrator, create_client
from .command import describe_job, prepare_command
from .config import validate_job
from .exceptions import LoadbenchError, LoadbenchProcessError, LoadbenchStateError
from .logging_config import get_logger
from .models import ClientState, JobSpec, Statistics, WorkerSettings
from .parser import parse_report
from .process import ProcessOutcome, ProcessRunner
from .writer import MetricsWriter

logger = get_logger("worker")


class Wrk2Worker:
    """Runs one JobSpec through wrk2. Not reusable across jobs."""

    def __init__(
        self,
        settings: WorkerSettings,
        client: httpx.AsyncClient,
        runner: ProcessRunner | None = None,
    ) -> None:
        self.settings = settings
        self.calibrator = Calibrator(
            client,
            first_request_timeout=settings.first_request_timeout,
            latency_timeout=settings.latency_timeout,
            probes=settings.latency_probes,
        )
        self.runner = runner or ProcessRunner(name=settings.executable)
        self.state = ClientState.NOT_STARTED
        self.job: JobSpec | None = None
        self.job_log_text = ""
        self.calibration = CalibrationResult()
        self.statistics: Statistics | None = None

    def _transition(self, target: ClientState) -> None:
        if not self.state.can_transition_to(target):
            raise LoadbenchStateError(
                f"Illegal job state transition {self.state.value} -> {target.value}",
                context={"job_id": self.job.job_id if self.job else None},
            )
        logger.debug("%s %s -> %s", self.job_log_text, self.state.value, target.value)
        self.state = target

    def _fail(self) -> None:
        if not self.state.is_terminal:
            self.state = ClientState.FAILED

    async def start_job(self, job: JobSpec) -> None:
        """Calibrate against the target, then spawn wrk2."""
        self._transition(ClientState.STARTING)
        self.job = job
        try:
            validate_job(job)
            self.job_log_text = describe_job(job)
            logger.info("Starting job %s", self.job_log_text, extra={"job_id": job.job_id})

            self.calibration = await self.calibrator.measure(job)

            self._transition(ClientState.RUNNING)
            command = prepare_command(job, self.settings.scripts_root, self.settings.executable)
            await self.runner.start(command, cwd=Path(self.settings.scripts_root), line_buffer=self.settings.line_buffer)
        except LoadbenchError:
            self._fail()
            raise
        except OSError as e:
            self._fail()
            raise LoadbenchProcessError(
                "Cannot start job",
                context={"job_id": job.job_id},
                original_error=e,
            ) from e
        except Exception:
            self._fail()
            raise

    async def wait_for_completion(self) -> Statistics:
        """Wait for wrk2 to exit and decode its report.

        Output in which no report line is recognized (nothing printed, a usage
        or error banner) yields an all-sentinel record. A non-zero exit code is
        logged and whatever was printed is still parsed.
        """
        if self.job is None or self.state is not ClientState.RUNNING:
            raise LoadbenchStateError(
                "Job is not running",
                context={"state": self.state.value},
            )
        job = self.job
        try:
            outcome = await self.runner.wait()
            statistics = self._collect(job, outcome)
        except Exception:
            self._fail()
            raise
        self.statistics = statistics
        self._transition(ClientState.COMPLETED)
        logger.info(
            "Job %s completed: rps=%s, p99=%s ms, requests=%s",
            job.job_id,
            statistics.requests_per_second,
            statistics.latency_99,
            statistics.total_requests,
            extra={"job_id": job.job_id},
        )
        return statistics

    def _collect(self, job: JobSpec, outcome: ProcessOutcome) -> Statistics:
        """Statistics from the drained output, with calibration values and job labels applied."""
        if outcome.returncode not in (0, None):
            logger.warning("%s exited with code %s", self.settings.executable, outcome.returncode)
        if outcome.error:
            logger.debug("stderr: %s", outcome.error.strip())

        result = parse_report(outcome.output)
        if result.has_data:
            if result.failures:
                logger.warning("%d dimensions could not be parsed: %s", len(result.failures), "; ".join(result.failures))
            statistics = result.statistics
        else:
            # Nothing recognizable: report nothing rather than zero errors
            logger.warning("No parsable report produced by %s", self.settings.executable)
            statistics = Statistics()

        return replace(
            statistics,
            first_request=self.calibration.first_request_ms,
            latency_no_load=self.calibration.no_load_latency_ms,
        ).with_metadata(job)

    async def stop_job(self) -> None:
        """Kill wrk2 if it is still running."""
        self.runner.stop()

    def delete(self) -> None:
        """Mark the job deleted and release the process."""
        if not self.state.is_terminal:
            self._transition(ClientState.DELETED)
        self.dispose()

    def dispose(self) -> None:
        self.runner.dispose()


async def run_job(
    job: JobSpec,
    settings: WorkerSettings,
    writer: MetricsWriter | None = None,
    client: httpx.AsyncClient | None = None,
    session: str = "",
    description: str = "",
    long_running: bool = False,
) -> Statistics:
    """Run one job end to end and persist its statistics when a writer is given.

    A writer error after retries propagates: some dimensions of this job may be missing.
    """
    owns_client = client is None
    http_client = client or create_client()
    worker = Wrk2Worker(settings, http_client)
    try:
        await worker.start_job(job)
        statistics = await worker.wait_for_completion()
    finally:
        worker.dispose()
        if owns_client:
            await http_client.aclose()

    if writer is not None:
        await writer.write(statistics, job, session=session, description=description, long_running=long_running)
    return statistics
