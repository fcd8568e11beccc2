"""Unit tests for comment reconciliation."""

import pytest
from reportsync.models import Comment, CommentTarget, Report, TargetKind, WatermarkParams
from reportsync.pipeline.comments import CommentReconciler, find_updatable
from reportsync.pipeline.watermark import WatermarkCodec

WM_A = '![](https://cml.dev/watermark.png "CML watermark a")'
WM_B = '![](https://cml.dev/watermark.png "CML watermark b")'


@pytest.fixture
def target():
    return CommentTarget(kind=TargetKind.COMMIT, identifier="abc123")


class TestFindUpdatable:
    def test_newest_match_wins(self):
        comments = [
            Comment(id="1", body=f"old\n\n{WM_A}"),
            Comment(id="2", body=f"other\n\n{WM_B}"),
            Comment(id="3", body=f"newer\n\n{WM_A}"),
        ]
        assert find_updatable(comments, WM_A).id == "3"

    def test_no_match(self):
        assert find_updatable([Comment(id="1", body="plain comment")], WM_A) is None

    def test_empty_watermark_matches_nothing(self):
        assert find_updatable([Comment(id="1", body="x")], "") is None


class TestCommentReconciler:
    @pytest.mark.asyncio
    async def test_create_without_update(self, driver, target):
        reconciler = CommentReconciler(driver)
        await reconciler.publish(Report(body="one", watermark=WM_A), target)
        await reconciler.publish(Report(body="two", watermark=WM_A), target)
        assert len(driver.comments) == 2

    @pytest.mark.asyncio
    async def test_update_twice_leaves_one_comment(self, driver, target):
        reconciler = CommentReconciler(driver)
        first = await reconciler.publish(Report(body="epoch 1", watermark=WM_A), target, update=True)
        second = await reconciler.publish(Report(body="epoch 2", watermark=WM_A), target, update=True)
        assert first == second
        assert len(driver.comments) == 1
        assert driver.comments[0].body == f"epoch 2\n\n{WM_A}"

    @pytest.mark.asyncio
    async def test_update_after_new_run_creates_comment(self, driver, target):
        codec = WatermarkCodec(image_url="https://cml.dev/watermark.png")
        run_1 = codec.render(WatermarkParams(label="{workflow}-{run}", workflow_id="w", run_id="1"))
        run_2 = codec.render(WatermarkParams(label="{workflow}-{run}", workflow_id="w", run_id="2"))
        reconciler = CommentReconciler(driver)

        await reconciler.publish(Report(body="run 1", watermark=run_1), target, update=True)
        await reconciler.publish(Report(body="run 2", watermark=run_2), target, update=True)

        assert len(driver.comments) == 2
        assert driver.comments[0].body == f"run 1\n\n{run_1}"
        assert driver.comments[1].body == f"run 2\n\n{run_2}"

    @pytest.mark.asyncio
    async def test_update_ignores_other_reports(self, driver, target):
        reconciler = CommentReconciler(driver)
        await reconciler.publish(Report(body="report b", watermark=WM_B), target)
        await reconciler.publish(Report(body="report a", watermark=WM_A), target, update=True)
        assert len(driver.comments) == 2
        assert driver.comments[0].body.startswith("report b")
