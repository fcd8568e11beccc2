"""
reportsync — Pull request reconciliation.

"Open a PR with these changes" is safe to re-run:

  changed files ∩ globs ── empty and globs given ──▶ nothing to do
        │
  source branch = explicit name, or <target>-cml-pr-<sha[:8]>
        │
  git ls-remote ── branch exists ──▶ reuse the open PR for source → target
        │                                (create one only if none is found)
  fetch sha → checkout -B target sha → checkout -b source
  → add matched paths → commit → push --set-upstream → driver.pr_create
"""

from __future__ import annotations

import glob
import os
from dataclasses import dataclass, field
from pathlib import Path

from reportsync.core.config import settings
from reportsync.drivers import Driver
from reportsync.models import AutoMergeMode, PRDescriptor
from reportsync.utils.exec import Runner, run
from reportsync.utils.logging import logger, step_timer

SKIP_CI_MARKER = "[skip ci]"


@dataclass
class PullRequestOptions:
    globs: list[str] = field(default_factory=list)
    remote: str = field(default_factory=lambda: settings.git.remote)
    branch: str | None = None
    message: str | None = None
    title: str | None = None
    body: str | None = None
    merge: bool = False
    rebase: bool = False
    squash: bool = False
    skip_ci: bool = False
    md: bool = False


def parse_porcelain(output: str) -> list[str]:
    """Paths from `git status --porcelain -z`. Renames report the new path."""
    entries = output.split("\0")
    paths: list[str] = []
    i = 0
    while i < len(entries):
        entry = entries[i]
        i += 1
        if len(entry) < 4:
            continue
        status, path = entry[:2], entry[3:]
        paths.append(path)
        if status[0] in "RC":
            # the original path follows as its own entry
            i += 1
    return paths


def expand_globs(patterns: list[str], root: Path) -> set[str]:
    """Files matched by the patterns, relative to root. Directories match every file below them."""
    matched: set[str] = set()
    for pattern in patterns:
        for hit in glob.glob(pattern, root_dir=root, recursive=True):
            full = root / hit
            if full.is_dir():
                for dirpath, _, filenames in os.walk(full):
                    for name in filenames:
                        matched.add(os.path.relpath(os.path.join(dirpath, name), root))
            else:
                matched.add(os.path.normpath(hit))
    return {m.replace(os.sep, "/") for m in matched}


async def trigger_sha(driver: Driver, exec_fn: Runner = run) -> str:
    return driver.sha or await exec_fn("git", "rev-parse", "HEAD")


async def current_branch(driver: Driver, exec_fn: Runner = run) -> str:
    return driver.branch or await exec_fn("git", "branch", "--show-current")


class PRReconciler:
    def __init__(self, driver: Driver, repo: str, exec_fn: Runner = run, root: Path | None = None):
        self.driver = driver
        self.repo = repo
        self.exec = exec_fn
        self.root = root or Path.cwd()

    def render(self, url: str, md: bool = False) -> str:
        if md:
            return f"[CML's {self.driver.pr_noun}]({url})"
        return url

    async def changed_files(self) -> list[str]:
        out = await self.exec("git", "status", "--porcelain", "-z", "--untracked-files=all")
        return parse_porcelain(out)

    async def remote_branch_exists(self, remote: str, branch: str) -> bool:
        remote_url = await self.exec("git", "config", "--get", f"remote.{remote}.url")
        refs = await self.exec("git", "ls-remote", remote_url, branch)
        return any(line.endswith(f"refs/heads/{branch}") for line in refs.splitlines())

    async def open(self, options: PullRequestOptions) -> str | None:
        """Open (or find) the pull request carrying the local changes. None when there is nothing to do."""
        with step_timer("Reconcile pull request"):
            files = await self.changed_files()
            if not files and options.globs:
                logger.warning("No changed files matched by glob path. Nothing to do.")
                return None

            if options.globs:
                matched = expand_globs(options.globs, self.root)
                paths = [f for f in files if f in matched]
                if not paths:
                    logger.warning("Input files are not affected. Nothing to do.")
                    return None
            else:
                paths = files

            sha = await trigger_sha(self.driver, self.exec)
            sha_short = sha[:8]
            target = await current_branch(self.driver, self.exec)
            source = options.branch or f"{target}-cml-pr-{sha_short}"
            auto_merge = AutoMergeMode.from_flags(options.merge, options.rebase, options.squash)

            if await self.remote_branch_exists(options.remote, source):
                logger.warning("  Branch %s already exists", source)
                for pr in await self.driver.prs_list():
                    if source.endswith(pr.source) and target.endswith(pr.target):
                        logger.info("  Reusing %s", pr.url)
                        return self.render(pr.url, options.md)
            else:
                await self.exec("git", "fetch", options.remote, sha)
                if paths:
                    await self.exec("git", "checkout", "-B", target, sha)
                await self.exec("git", "checkout", "-b", source)

                if paths:
                    await self.exec("git", "add", *paths)
                    commit_message = options.message or f"CML PR for {sha_short}"
                    if options.skip_ci or (not options.message and auto_merge is None):
                        commit_message += f" {SKIP_CI_MARKER}"
                    await self.exec("git", "commit", "-m", commit_message)

                await self.exec("git", "push", "--set-upstream", options.remote, source)
                logger.info("  Pushed %d file(s) to %s", len(paths), source)

            url = await self.driver.pr_create(PRDescriptor(
                source_branch=source,
                target_branch=target,
                title=options.title or f"CML PR for {target} {sha_short}",
                description=options.body or f"Automated commits for {self.repo}/commit/{sha} created by CML.",
                auto_merge=auto_merge,
                skip_ci=options.skip_ci,
            ))
            return self.render(url, options.md)
