"""
reportsync — Comment reconciliation.

Posting the same logical report twice must leave one comment: with `update`,
the newest comment whose body contains the report's watermark is edited in
place; otherwise a new comment is created.
"""

from __future__ import annotations

from reportsync.drivers import Driver
from reportsync.models import Comment, CommentTarget, Report
from reportsync.pipeline.watermark import WatermarkCodec
from reportsync.utils.logging import logger, step_timer


def find_updatable(comments: list[Comment], watermark: str) -> Comment | None:
    """Newest comment carrying the watermark. Drivers list comments oldest first."""
    for comment in reversed(comments):
        if WatermarkCodec.matches(comment.body, watermark):
            return comment
    return None


class CommentReconciler:
    def __init__(self, driver: Driver):
        self.driver = driver

    async def publish(self, report: Report, target: CommentTarget, update: bool = False) -> str:
        """Create or update the report comment on `target` and return its URL."""
        body = report.render()
        with step_timer(f"Post report on {target.kind.value} {target.identifier}"):
            if update:
                existing = find_updatable(await self.driver.comments_list(target), report.watermark)
                if existing is not None:
                    logger.info("  Updating comment %s", existing.id)
                    return await self.driver.comment_update(target, existing.id, body)
                logger.info("  No comment with a matching watermark; creating one")

            return await self.driver.comment_create(target, body)
