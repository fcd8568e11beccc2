"""
reportsync — Runner output parser.

Turns one chunk of raw runner output into lifecycle events. Each rule is
tested against the whole chunk, in order; a matching rule yields one event.
There is no memory between calls: the same text parsed twice yields the
same events twice.
"""

from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable

from reportsync.drivers import RunnerLogPatterns
from reportsync.models import LogLevel, RunnerLogEvent, RunnerStatus

Extractor = Callable[[str, re.Match, RunnerLogPatterns], dict]


def _search_id(pattern: re.Pattern | None, text: str, group: str) -> str | None:
    if pattern is None:
        return None
    m = pattern.search(text)
    if not m:
        return None
    if group in pattern.groupindex:
        return m.group(group)
    return m.group(1) if pattern.groups else None


def _job_started(text: str, match: re.Match, patterns: RunnerLogPatterns) -> dict:
    groups = match.groupdict()
    return {
        "job": groups.get("job") or _search_id(patterns.job, text, "job"),
        "pipeline": groups.get("pipeline") or _search_id(patterns.pipeline, text, "pipeline"),
    }


def _job_ended(text: str, match: re.Match, patterns: RunnerLogPatterns) -> dict:
    success = bool(patterns.job_ended_succeeded.search(text))
    return {
        "success": success,
        "level": LogLevel.INFO if success else LogLevel.ERROR,
    }


def _no_fields(text: str, match: re.Match, patterns: RunnerLogPatterns) -> dict:
    return {}


RULES: list[tuple[RunnerStatus, Callable[[RunnerLogPatterns], re.Pattern], Extractor]] = [
    (RunnerStatus.READY, lambda p: p.ready, _no_fields),
    (RunnerStatus.JOB_STARTED, lambda p: p.job_started, _job_started),
    (RunnerStatus.JOB_ENDED, lambda p: p.job_ended, _job_ended),
]


def parse_runner_log(
    data: str | bytes,
    patterns: RunnerLogPatterns,
    repo: str = "",
    now: datetime | None = None,
) -> list[RunnerLogEvent]:
    if not data:
        return []
    text = data.decode("utf-8", errors="replace") if isinstance(data, bytes) else data
    timestamp = now or datetime.now(timezone.utc)

    events: list[RunnerLogEvent] = []
    for status, select, extract in RULES:
        match = select(patterns).search(text)
        if not match:
            continue
        events.append(RunnerLogEvent(
            status=status,
            timestamp=timestamp,
            repo=repo,
            **extract(text, match, patterns),
        ))
    return events
