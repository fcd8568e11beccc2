"""
reportsync — Engine facade.

Entry point used by CI commands:

  comment_create → [publish assets] → resolve target → create / update comment
                 └─ watch=True: hand over to LiveWatchLoop, never returns
  pr_create      → ci (git identity, safe.directory, depth) → PRReconciler
  parse_runner_log, runner_*, check_create, pipeline_* → driver

Nothing here knows which hosting platform it talks to; that is the driver's job.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Awaitable, Callable
from urllib.parse import urlsplit, urlunsplit

from reportsync.assets import AssetStoreClient, MimeSniffer
from reportsync.core.config import infer_driver_name, infer_token, settings
from reportsync.drivers import Driver, resolve_driver
from reportsync.errors import (
    CommandError,
    MarkdownFileRequiredError,
    RepoTokenInvalidError,
    RunnerNotFoundError,
    TargetUnresolvedError,
)
from reportsync.models import (
    CommentTarget,
    Report,
    Runner,
    RunnerJob,
    RunnerLogEvent,
    RunnerStatus,
    TargetKind,
    UploadResult,
    WatermarkParams,
)
from reportsync.pipeline.comments import CommentReconciler
from reportsync.pipeline.publish_assets import AssetPublisher
from reportsync.pipeline.pull_request import (
    PRReconciler,
    PullRequestOptions,
    current_branch,
    trigger_sha,
)
from reportsync.pipeline.runner_log import parse_runner_log
from reportsync.pipeline.watch import LiveWatchLoop
from reportsync.pipeline.watermark import WatermarkCodec, require_watermark
from reportsync.utils.exec import Runner as CommandRunner
from reportsync.utils.exec import run
from reportsync.utils.logging import logger
from reportsync.utils.uri import preventcache_uri, watermark_uri

TargetResolver = Callable[..., Awaitable[CommentTarget]]

_SCP_LIKE = re.compile(r"^(?:[\w.-]+@)?([\w.-]+):(?!//)(.+)$")


def normalize_repo_url(url: str) -> str:
    """https URL of a git remote, without credentials, `.git` or a trailing slash."""
    url = url.strip()
    m = _SCP_LIKE.match(url)
    if m and "://" not in url:
        url = f"https://{m.group(1)}/{m.group(2)}"
    parsed = urlsplit(url)
    scheme = "http" if parsed.scheme == "http" else "https"
    netloc = parsed.hostname or ""
    if parsed.port:
        netloc += f":{parsed.port}"
    url = urlunsplit((scheme, netloc, parsed.path, "", "")).rstrip("/")
    return url[:-4] if url.endswith(".git") else url


class ReportSync:
    """
    Publishes reports and pull requests through one hosting platform driver.

    All collaborators are injectable; by default the asset store, the command
    runner and the watermark codec come from settings.
    """

    def __init__(
        self,
        driver: Driver,
        repo: str | None = None,
        store: AssetStoreClient | None = None,
        exec_fn: CommandRunner = run,
        resolve_target: TargetResolver | None = None,
        codec: WatermarkCodec | None = None,
        root: Path | None = None,
    ):
        self.driver = driver
        self.repo = normalize_repo_url(repo or driver.repo)
        self.exec = exec_fn
        self.store = store or AssetStoreClient(
            endpoint=settings.assets.endpoint,
            sniffer=MimeSniffer(settings.assets.magic_file),
            timeout=settings.assets.timeout,
        )
        self.codec = codec or WatermarkCodec()
        self._resolve_target = resolve_target or self._commit_target
        self.root = root or Path.cwd()

    @classmethod
    async def from_environment(
        cls,
        driver: str | None = None,
        repo: str | None = None,
        token: str | None = None,
        exec_fn: CommandRunner = run,
        **kwargs: Any,
    ) -> ReportSync:
        """Build the engine from CI environment variables and the checkout's remote."""
        if not repo:
            repo = await exec_fn("git", "config", "--get", f"remote.{settings.git.remote}.url")
        repo = normalize_repo_url(repo)
        name = driver or infer_driver_name(repo)
        instance = resolve_driver(name, repo=repo, token=token or infer_token())
        return cls(instance, repo=repo, exec_fn=exec_fn, **kwargs)

    # ---- git context ----

    async def trigger_sha(self) -> str:
        return await trigger_sha(self.driver, self.exec)

    async def branch(self) -> str:
        return await current_branch(self.driver, self.exec)

    async def _commit_target(
        self, commit_sha: str | None = None, pr: bool = False, target: str = "auto", driver: Driver | None = None
    ) -> CommentTarget:
        if pr or target.startswith("pr"):
            raise TargetUnresolvedError(target)
        if target.startswith("commit/"):
            commit_sha = target.split("/", 1)[1]
        return CommentTarget(kind=TargetKind.COMMIT, identifier=commit_sha or await self.trigger_sha())

    # ---- reports ----

    def watermark(self, label: str = "") -> str:
        return self.codec.render(WatermarkParams(
            label=label,
            workflow_id=self.driver.workflow_id,
            run_id=self.driver.run_id,
        ))

    async def publish(
        self,
        path: str | Path | None = None,
        buffer: bytes | None = None,
        mime: str | None = None,
        title: str = "",
        md: bool = False,
        native: bool = False,
        rm_watermark: bool = False,
        session: str | None = None,
        url: str | None = None,
    ) -> str:
        """Upload one asset and return its URI, or a markdown image/link when `md` is set."""
        if native:
            result: UploadResult = await self.driver.upload(path=Path(path) if path else None, buffer=buffer)
        else:
            store = self.store
            if url:
                store = AssetStoreClient(endpoint=url, sniffer=self.store.sniffer, timeout=self.store.timeout)
            result = await store.upload(path=path, buffer=buffer, mime=mime, session=session)

        uri = result.uri
        if not rm_watermark:
            uri = watermark_uri(uri, result.mime.split("/")[1])
        uri = preventcache_uri(uri)

        if md and re.match(r"(image|video)/", result.mime):
            suffix = f' "{title}"' if title else ""
            return f"![]({uri}{suffix})"
        if md:
            return f"[{title}]({uri})"
        return uri

    def _asset_publisher(self, publish_url: str | None, session: str | None, native: bool, rm_watermark: bool) -> AssetPublisher:
        async def upload(path: Path) -> str:
            return await self.publish(
                path=path, url=publish_url, session=session, native=native, rm_watermark=rm_watermark,
            )
        return AssetPublisher(upload)

    async def comment_create(
        self,
        markdown_file: str | Path | None = None,
        report: str | None = None,
        commit_sha: str | None = None,
        pr: bool = False,
        target: str = "auto",
        publish: bool = False,
        publish_url: str | None = None,
        session: str | None = None,
        native: bool = False,
        rm_watermark: bool = False,
        trigger_file: str | Path | None = None,
        update: bool = False,
        watch: bool = False,
        watermark_title: str = "",
    ) -> str | None:
        """Post the report as a comment, or keep it updated forever with `watch`."""
        require_watermark(rm_watermark, update, watch)
        watermark = "" if rm_watermark else self.watermark(watermark_title)
        base_dir = Path(markdown_file).resolve().parent if markdown_file else self.root
        publisher = self._asset_publisher(publish_url, session, native, rm_watermark)

        if watch:
            if not markdown_file:
                raise MarkdownFileRequiredError()

            async def cycle(cycle_update: bool) -> str | None:
                return await self.comment_create(
                    markdown_file=markdown_file, report=report, commit_sha=commit_sha, pr=pr,
                    target=target, publish=publish, publish_url=publish_url, session=session,
                    native=native, rm_watermark=rm_watermark, update=cycle_update,
                    watch=False, watermark_title=watermark_title,
                )

            loop = LiveWatchLoop(cycle, markdown_file, trigger_file=trigger_file, update=update)
            if publish and not trigger_file:
                try:
                    text = Path(markdown_file).read_text(encoding="utf-8")
                except OSError:
                    text = ""
                for path in publisher.local_references(text, base_dir):
                    loop.watch(path)
            await loop.run_forever()
            return None

        body = report if report is not None else Path(markdown_file).read_text(encoding="utf-8")
        if publish:
            body = (await publisher.publish(body, base_dir)).markdown

        resolved = await self._resolve_target(commit_sha=commit_sha, pr=pr, target=target, driver=self.driver)
        return await CommentReconciler(self.driver).publish(Report(body=body, watermark=watermark), resolved, update)

    async def check_create(self, head_sha: str | None = None, **options: Any) -> Any:
        return await self.driver.check_create(head_sha=head_sha or await self.trigger_sha(), **options)

    # ---- git setup & pull requests ----

    async def fix_git_safe_directory(self) -> None:
        """Trust the checkout (and its parents) for git >= 2.35.2 ownership checks."""
        try:
            existing = set((await self.exec("git", "config", "--global", "--get-all", "safe.directory")).splitlines())
        except CommandError:
            existing = set()

        cwd = self.root.resolve()
        for directory in ["*", "/", *(str(p) for p in [cwd, *cwd.parents] if p != Path(p.anchor))]:
            if directory not in existing:
                await self.exec("git", "config", "--global", "--add", "safe.directory", directory)
                existing.add(directory)

    async def ci(
        self,
        unshallow: bool = False,
        fetch_depth: int | None = None,
        user_email: str | None = None,
        user_name: str | None = None,
        remote: str | None = None,
    ) -> str | None:
        """Prepare the checkout for committing: identity, remote auth, clone depth."""
        await self.fix_git_safe_directory()
        commands = await self.driver.update_git_config(
            user_name=user_name or settings.git.user_name,
            user_email=user_email or settings.git.user_email,
            remote=remote or settings.git.remote,
        )
        for command in commands:
            try:
                await self.exec(*command)
            except CommandError:
                # unsetting a key that was never set is fine
                if command[:3] != ["git", "config", "--unset"]:
                    raise

        if fetch_depth is None and unshallow:
            fetch_depth = 0
        if fetch_depth is None:
            return None
        if fetch_depth <= 0:
            if await self.exec("git", "rev-parse", "--is-shallow-repository") == "true":
                return await self.exec("git", "fetch", "--all", "--tags", "--unshallow")
            return None
        return await self.exec("git", "fetch", "--all", "--tags", "--depth", str(fetch_depth))

    async def pr_create(
        self,
        globs: list[str] | None = None,
        remote: str | None = None,
        md: bool = False,
        skip_ci: bool = False,
        branch: str | None = None,
        message: str | None = None,
        title: str | None = None,
        body: str | None = None,
        merge: bool = False,
        rebase: bool = False,
        squash: bool = False,
        unshallow: bool = False,
        fetch_depth: int | None = None,
        user_email: str | None = None,
        user_name: str | None = None,
    ) -> str | None:
        remote = remote or settings.git.remote
        await self.ci(
            unshallow=unshallow, fetch_depth=fetch_depth, user_email=user_email, user_name=user_name, remote=remote,
        )
        reconciler = PRReconciler(self.driver, self.repo, exec_fn=self.exec, root=self.root)
        return await reconciler.open(PullRequestOptions(
            globs=list(globs or []),
            remote=remote,
            branch=branch,
            message=message,
            title=title,
            body=body,
            merge=merge,
            rebase=rebase,
            squash=squash,
            skip_ci=skip_ci,
            md=md,
        ))

    # ---- runners ----

    async def runner_token(self) -> str:
        return await self.driver.runner_token_issue()

    async def repo_token_check(self) -> None:
        try:
            await self.runner_token()
        except Exception as exc:
            if str(exc) == "Bad credentials":
                raise RepoTokenInvalidError() from exc
            raise

    async def runners(self, **options: Any) -> list[Runner]:
        return await self.driver.runners_list(**options)

    async def runner_by_name(self, name: str, runners: list[Runner] | None = None) -> Runner | None:
        if runners is None:
            runners = await self.runners()
        return next((r for r in runners if r.name == name), None)

    async def runner_by_id(self, runner_id: str) -> Runner | None:
        return await self.driver.runner_get_by_id(runner_id)

    async def runners_by_labels(self, labels: str, runners: list[Runner] | None = None) -> list[Runner]:
        if runners is None:
            runners = await self.runners()
        wanted = labels.split(",")
        return [r for r in runners if all(label in r.labels for label in wanted)]

    async def runner_job(self, name: str | None = None, status: str = "running") -> RunnerJob | None:
        return await self.driver.runner_job_lookup(name=name, status=status)

    async def register_runner(self, **options: Any) -> Any:
        return await self.driver.runner_create(**options)

    async def start_runner(self, **options: Any) -> Any:
        return await self.driver.runner_start(**options)

    async def unregister_runner(self, name: str, **options: Any) -> None:
        runner = await self.runner_by_name(name)
        if runner is None:
            raise RunnerNotFoundError(name)
        await self.driver.runner_delete(runner.id, **options)

    async def parse_runner_log(self, data: str | bytes | None, name: str | None = None) -> list[RunnerLogEvent]:
        """Lifecycle events in one chunk of runner output."""
        if not data:
            return []
        events = parse_runner_log(data, self.driver.runner_log_patterns(), repo=self.repo)

        if name and not self.driver.embeds_job_id_in_log:
            for event in events:
                if event.status is not RunnerStatus.JOB_STARTED:
                    continue
                runner = await self.runner_by_name(name)
                if runner is None:
                    logger.warning("  Runner %s not listed; job id unknown", name)
                    continue
                job = await self.driver.runner_job_lookup(runner_id=runner.id)
                event.job = job.id if job else None
        return events

    # ---- pipelines ----

    async def pipeline_rerun(self, **options: Any) -> Any:
        return await self.driver.pipeline_rerun(**options)

    async def pipeline_jobs(self, **options: Any) -> Any:
        return await self.driver.pipeline_jobs(**options)
