"""
reportsync — Pull request and runner contracts returned by drivers.
"""

from __future__ import annotations

import enum
from datetime import datetime

from pydantic import BaseModel, Field


class AutoMergeMode(str, enum.Enum):
    MERGE = "merge"
    REBASE = "rebase"
    SQUASH = "squash"

    @classmethod
    def from_flags(cls, merge: bool = False, rebase: bool = False, squash: bool = False) -> AutoMergeMode | None:
        """Pick one mode; merge wins over rebase, rebase over squash."""
        if merge:
            return cls.MERGE
        if rebase:
            return cls.REBASE
        if squash:
            return cls.SQUASH
        return None


class PRDescriptor(BaseModel):
    source_branch: str
    target_branch: str
    title: str
    description: str
    auto_merge: AutoMergeMode | None = None
    skip_ci: bool = False


class PullRequest(BaseModel):
    url: str
    source: str
    target: str


class Runner(BaseModel):
    id: str
    name: str
    labels: list[str] = Field(default_factory=list)
    online: bool = False
    busy: bool = False


class RunnerJob(BaseModel):
    id: str
    status: str = "running"


class RunnerStatus(str, enum.Enum):
    READY = "ready"
    JOB_STARTED = "job_started"
    JOB_ENDED = "job_ended"


class LogLevel(str, enum.Enum):
    INFO = "info"
    ERROR = "error"


class RunnerLogEvent(BaseModel):
    """One lifecycle event extracted from a chunk of runner output."""

    status: RunnerStatus
    timestamp: datetime
    repo: str = ""
    job: str | None = None
    pipeline: str | None = None
    success: bool | None = None
    level: LogLevel = LogLevel.INFO
