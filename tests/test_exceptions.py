"""Unit tests for the loadbench error types."""

from __future__ import annotations

from loadbench.exceptions import LoadbenchError, LoadbenchProcessError, LoadbenchStorageError


def test_message_only() -> None:
    assert str(LoadbenchError("Job is not running")) == "Job is not running"


def test_context_and_cause_in_str() -> None:
    cause = FileNotFoundError(2, "No such file or directory")
    err = LoadbenchProcessError("Cannot start wrk2", context={"command": "wrk2 -d 15"}, original_error=cause)
    text = str(err)
    assert text.startswith("Cannot start wrk2 [command='wrk2 -d 15'] (caused by: FileNotFoundError:")
    assert err.message == "Cannot start wrk2"


def test_with_context_returns_same_error() -> None:
    err = LoadbenchStorageError("Cannot write dimension CPU", context={"table": "Benchmarks"})
    assert err.with_context(job_id="job-1") is err
    assert err.context == {"table": "Benchmarks", "job_id": "job-1"}


def test_context_is_copied() -> None:
    ctx = {"path": "job.yaml"}
    LoadbenchError("bad", context=ctx).with_context(line=3)
    assert ctx == {"path": "job.yaml"}
