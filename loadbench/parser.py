"""wrk2 text report decoder.

The report is free text; each dimension is extracted independently by a rule
(pattern, extractor, value when the pattern is absent). Extractors are total:
malformed values degrade to the sentinel (or zero for error counts) and are
recorded as failures, never raised.

Socket errors and bad responses default to 0 when their line is absent
because wrk2 omits those lines when nothing went wrong; every other dimension
defaults to the sentinel.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import timedelta
from typing import Callable

from .logging_config import get_logger
from .models import SENTINEL, Statistics

logger = get_logger("parser")

LATENCY_PATTERN = r"(?:^|\s+){0}\s+([\d\.]+)(\w+)"
RPS_PATTERN = re.compile(r"Requests/sec:\s*([\d\.]*)")
SOCKET_ERRORS_PATTERN = re.compile(
    r"Socket errors: connect ([\d\.]*), read ([\d\.]*), write ([\d\.]*), timeout ([\d\.]*)"
)
BAD_RESPONSES_PATTERN = re.compile(r"Non-2xx or 3xx responses: ([\d\.]*)")
REQUESTS_PATTERN = re.compile(r"([\d\.]*) requests in ([\d\.]*)(\w*)")

Extractor = Callable[[re.Match[str], list[str]], float]


@dataclass(frozen=True, slots=True)
class ExtractionRule:
    field: str
    pattern: re.Pattern[str]
    extractor: Extractor
    default: float = SENTINEL
    log_absence: bool = False


@dataclass(frozen=True, slots=True)
class ParseResult:
    statistics: Statistics
    failures: tuple[str, ...]
    matched: tuple[str, ...] = ()

    @property
    def has_data(self) -> bool:
        """True when at least one rule found its line in the text."""
        return bool(self.matched)


def read_latency(value: str, unit: str) -> float:
    """Latency in milliseconds, or -1 when the value or unit cannot be read."""
    try:
        number = float(value)
    except ValueError:
        logger.warning("Failed to parse latency: %r", value)
        return SENTINEL
    if unit == "s":
        return number * 1000
    if unit == "ms":
        return number
    if unit == "us":
        return number / 1000
    logger.warning("Failed to parse latency unit: %s", unit)
    return SENTINEL


def read_duration(value: str, unit: str) -> timedelta | None:
    """Duration of the run (s, m or h), or None when it cannot be read."""
    try:
        number = float(value)
    except ValueError:
        logger.warning("Failed to parse duration: %r", value)
        return None
    if unit == "s":
        return timedelta(seconds=number)
    if unit == "m":
        return timedelta(minutes=number)
    if unit == "h":
        return timedelta(hours=number)
    logger.warning("Failed to parse duration unit: %s", unit)
    return None


def _failed(failures: list[str], field: str, match: re.Match[str]) -> None:
    failures.append(f"{field}: cannot read {match.group(0).strip()!r}")


def _latency_extractor(field: str) -> Extractor:
    def extract(match: re.Match[str], failures: list[str]) -> float:
        value = read_latency(match.group(1), match.group(2))
        if value == SENTINEL:
            _failed(failures, field, match)
        return value

    return extract


def _requests_per_second(match: re.Match[str], failures: list[str]) -> float:
    try:
        return float(match.group(1))
    except ValueError:
        logger.warning("Failed to parse requests per second")
        _failed(failures, "requests_per_second", match)
        return SENTINEL


def _socket_errors(match: re.Match[str], failures: list[str]) -> float:
    try:
        return float(sum(int(match.group(i)) for i in range(1, 5)))
    except ValueError:
        logger.warning("Failed to parse socket errors")
        _failed(failures, "socket_errors", match)
        return 0


def _bad_responses(match: re.Match[str], failures: list[str]) -> float:
    try:
        return float(int(match.group(1)))
    except ValueError:
        logger.warning("Failed to parse bad responses")
        _failed(failures, "bad_responses", match)
        return 0


def _total_requests(match: re.Match[str], failures: list[str]) -> float:
    try:
        return float(int(match.group(1)))
    except ValueError:
        logger.warning("Failed to parse requests")
        _failed(failures, "total_requests", match)
        return SENTINEL


def _duration_ms(match: re.Match[str], failures: list[str]) -> float:
    duration = read_duration(match.group(2), match.group(3))
    if duration is None:
        _failed(failures, "duration_ms", match)
        return SENTINEL
    return duration.total_seconds() * 1000


def _latency_rule(field: str, label: str) -> ExtractionRule:
    return ExtractionRule(
        field=field,
        pattern=re.compile(LATENCY_PATTERN.format(label)),
        extractor=_latency_extractor(field),
        log_absence=True,
    )


RULES: tuple[ExtractionRule, ...] = (
    ExtractionRule("requests_per_second", RPS_PATTERN, _requests_per_second),
    _latency_rule("latency_average", "Latency"),
    _latency_rule("latency_50", r"50\.000%"),
    _latency_rule("latency_75", r"75\.000%"),
    _latency_rule("latency_90", r"90\.000%"),
    _latency_rule("latency_99", r"99\.000%"),
    _latency_rule("max_latency", r"100\.000%"),
    ExtractionRule("socket_errors", SOCKET_ERRORS_PATTERN, _socket_errors, default=0),
    ExtractionRule("bad_responses", BAD_RESPONSES_PATTERN, _bad_responses, default=0),
    ExtractionRule("total_requests", REQUESTS_PATTERN, _total_requests, log_absence=True),
    ExtractionRule("duration_ms", REQUESTS_PATTERN, _duration_ms, log_absence=True),
)


def extract_values(
    text: str, rules: tuple[ExtractionRule, ...] = RULES
) -> tuple[dict[str, float], list[str], list[str]]:
    """Apply each rule to the text. Returns field values, failure messages and matched fields."""
    values: dict[str, float] = {}
    failures: list[str] = []
    matched: list[str] = []
    for rule in rules:
        match = rule.pattern.search(text)
        if match is None:
            if rule.log_absence:
                logger.warning("Failed to parse %s: pattern not found", rule.field)
                failures.append(f"{rule.field}: not found")
            values[rule.field] = rule.default
            continue
        matched.append(rule.field)
        values[rule.field] = rule.extractor(match, failures)
    return values, failures, matched


def parse_report(text: str) -> ParseResult:
    """Decode a wrk2 report into a Statistics record.

    Only client-side dimensions are filled; everything else stays at the sentinel.
    """
    values, failures, matched = extract_values(text or "")
    return ParseResult(statistics=Statistics(**values), failures=tuple(failures), matched=tuple(matched))
