"""
reportsync — Hosting platform driver interface.

One concrete subclass per platform (GitHub, GitLab, Bitbucket) lives outside
this package. The engine only talks to this interface and never branches on
the platform name; platform differences are expressed as attributes
(`pr_noun`, `embeds_job_id_in_log`) or by the patterns a driver returns.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Any

from reportsync.errors import CapabilityUnsupportedError
from reportsync.models import (
    Comment,
    CommentTarget,
    PRDescriptor,
    PullRequest,
    Runner,
    RunnerJob,
    UploadResult,
)


@dataclass(frozen=True)
class RunnerLogPatterns:
    """Regexes a driver supplies to recognise its runner's lifecycle in raw output."""
    ready: re.Pattern[str]
    job_started: re.Pattern[str]
    job_ended: re.Pattern[str]
    job_ended_succeeded: re.Pattern[str]
    job: re.Pattern[str] | None = None
    pipeline: re.Pattern[str] | None = None


class Driver(ABC):
    """Comment, pull request, runner and check operations of one hosting platform."""

    pr_noun: str = "Pull Request"
    embeds_job_id_in_log: bool = True

    # CI context; None when not running inside the platform's CI.
    sha: str | None = None
    branch: str | None = None
    workflow_id: str | None = None
    run_id: str | None = None

    def __init__(self, repo: str, token: str | None = None):
        self.repo = repo
        self.token = token

    def _unsupported(self, capability: str) -> CapabilityUnsupportedError:
        return CapabilityUnsupportedError(type(self).__name__, capability)

    # ---- Comments ----

    @abstractmethod
    async def comments_list(self, target: CommentTarget) -> list[Comment]:
        """Comments on the target, oldest first."""

    @abstractmethod
    async def comment_create(self, target: CommentTarget, body: str) -> str:
        """Create a comment and return its URL."""

    @abstractmethod
    async def comment_update(self, target: CommentTarget, comment_id: str, body: str) -> str:
        """Replace a comment body and return its URL."""

    # ---- Pull / merge requests ----

    @abstractmethod
    async def prs_list(self) -> list[PullRequest]: ...

    @abstractmethod
    async def pr_create(self, descriptor: PRDescriptor) -> str:
        """Open a pull request and return its URL."""

    # ---- Git ----

    @abstractmethod
    async def update_git_config(self, user_name: str, user_email: str, remote: str) -> list[list[str]]:
        """Commands that prepare the checkout for committing and pushing."""

    # ---- Runners ----

    @abstractmethod
    def runner_log_patterns(self) -> RunnerLogPatterns: ...

    async def runner_token_issue(self) -> str:
        raise self._unsupported("runner tokens")

    async def runner_create(self, **options: Any) -> Any:
        raise self._unsupported("runner registration")

    async def runner_start(self, **options: Any) -> Any:
        raise self._unsupported("runner start")

    async def runner_delete(self, runner_id: str, **options: Any) -> None:
        raise self._unsupported("runner removal")

    async def runners_list(self, **options: Any) -> list[Runner]:
        raise self._unsupported("runner listing")

    async def runner_get_by_id(self, runner_id: str) -> Runner | None:
        raise self._unsupported("runner lookup")

    async def runner_job_lookup(
        self, runner_id: str | None = None, name: str | None = None, status: str = "running"
    ) -> RunnerJob | None:
        raise self._unsupported("runner job lookup")

    # ---- Checks, pipelines, uploads ----

    async def check_create(self, head_sha: str, **options: Any) -> Any:
        raise self._unsupported("check runs")

    async def pipeline_rerun(self, **options: Any) -> Any:
        raise self._unsupported("pipeline rerun")

    async def pipeline_jobs(self, **options: Any) -> Any:
        raise self._unsupported("pipeline jobs")

    async def upload(self, path: Path | None = None, buffer: bytes | None = None) -> UploadResult:
        raise self._unsupported("native uploads")
