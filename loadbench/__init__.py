"""
loadbench - wrk2 job worker for performance-regression pipelines.

Calibrates unloaded latency, drives wrk2 through a job, decodes its text
report into a fixed metric set and stores one row per measured dimension.
"""

from .exceptions import (
    LoadbenchConfigError,
    LoadbenchError,
    LoadbenchProcessError,
    LoadbenchStateError,
    LoadbenchStorageError,
)

__all__ = [
    "__version__",
    "LoadbenchConfigError",
    "LoadbenchError",
    "LoadbenchProcessError",
    "LoadbenchStateError",
    "LoadbenchStorageError",
]

__version__ = "1.0.0"
