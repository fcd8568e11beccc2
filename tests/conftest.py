"""Shared test configuration and fixtures for the reportsync test suite."""

import re
import sys
from pathlib import Path

import pytest

# Add the source directory to the Python path so imports work without installing
engine_dir = str(Path(__file__).parent.parent / "engine")
if engine_dir not in sys.path:
    sys.path.insert(0, engine_dir)

from reportsync.drivers import Driver, RunnerLogPatterns  # noqa: E402
from reportsync.errors import CommandError  # noqa: E402
from reportsync.models import Comment, PullRequest, Runner, RunnerJob  # noqa: E402

REPO = "https://github.com/acme/models"


class FakeDriver(Driver):
    """In-memory platform: comments, pull requests and runners live in lists."""

    def __init__(self, repo=REPO, token=None):
        super().__init__(repo, token)
        self.sha = "0123456789abcdef0123456789abcdef01234567"
        self.branch = "main"
        self.workflow_id = "train"
        self.run_id = "42"
        self.comments: list[Comment] = []
        self.prs: list[PullRequest] = []
        self.created_prs = []
        self.runners: list[Runner] = []
        self.jobs: dict[str, RunnerJob] = {}
        self.deleted_runners: list[str] = []
        self.token_error: Exception | None = None
        self.git_commands = [
            ["git", "config", "--unset", "http.https://github.com/.extraheader"],
            ["git", "config", "user.name", "Olivaw[bot]"],
        ]
        self.patterns = RunnerLogPatterns(
            ready=re.compile(r"Listening for Jobs"),
            job_started=re.compile(r"Running job: (?P<job>\S+)(?: in pipeline (?P<pipeline>\d+))?"),
            job_ended=re.compile(r"Job \S+ completed with result: \w+"),
            job_ended_succeeded=re.compile(r"completed with result: Succeeded"),
        )

    async def comments_list(self, target):
        return list(self.comments)

    async def comment_create(self, target, body):
        comment_id = str(len(self.comments) + 1)
        url = f"{self.repo}/commit/{target.identifier}#comment-{comment_id}"
        self.comments.append(Comment(id=comment_id, body=body, url=url))
        return url

    async def comment_update(self, target, comment_id, body):
        for i, comment in enumerate(self.comments):
            if comment.id == comment_id:
                self.comments[i] = comment.model_copy(update={"body": body})
                return comment.url
        raise KeyError(comment_id)

    async def prs_list(self):
        return list(self.prs)

    async def pr_create(self, descriptor):
        self.created_prs.append(descriptor)
        url = f"{self.repo}/pull/{len(self.created_prs)}"
        self.prs.append(PullRequest(url=url, source=descriptor.source_branch, target=descriptor.target_branch))
        return url

    async def update_git_config(self, user_name, user_email, remote):
        return self.git_commands

    def runner_log_patterns(self):
        return self.patterns

    async def runner_token_issue(self):
        if self.token_error:
            raise self.token_error
        return "runner-token"

    async def runners_list(self, **options):
        return list(self.runners)

    async def runner_job_lookup(self, runner_id=None, name=None, status="running"):
        return self.jobs.get(runner_id or name)

    async def runner_delete(self, runner_id, **options):
        self.deleted_runners.append(runner_id)


class FakeGit:
    """
    Scripted command runner.

    Answers by longest matching argv prefix. Tracks remote branches so that
    `git ls-remote` reflects earlier `git push --set-upstream` calls.
    """

    def __init__(self, outputs=None):
        self.calls: list[tuple[str, ...]] = []
        self.outputs: dict[tuple[str, ...], object] = {
            ("git", "config", "--get"): "https://github.com/acme/models.git",
            ("git", "rev-parse", "HEAD"): "fedcba9876543210fedcba9876543210fedcba98",
            ("git", "branch", "--show-current"): "main",
            ("git", "status"): "",
        }
        self.outputs.update(outputs or {})
        self.remote_branches: set[str] = set()

    def count(self, *prefix):
        return sum(1 for call in self.calls if call[: len(prefix)] == prefix)

    async def __call__(self, *args):
        args = tuple(str(a) for a in args)
        self.calls.append(args)

        if args[:2] == ("git", "ls-remote"):
            branch = args[3]
            return f"abc123\trefs/heads/{branch}" if branch in self.remote_branches else ""
        if args[:3] == ("git", "push", "--set-upstream"):
            self.remote_branches.add(args[4])
            return ""

        best = None
        for prefix in self.outputs:
            if args[: len(prefix)] == prefix and (best is None or len(prefix) > len(best)):
                best = prefix
        if best is None:
            return ""
        answer = self.outputs[best]
        if isinstance(answer, Exception):
            raise answer
        return answer


def command_error(*args, returncode=1, stderr=""):
    return CommandError(list(args), returncode, "", stderr)


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def driver():
    return FakeDriver()


@pytest.fixture
def git():
    return FakeGit()
