"""Unit tests for watermark rendering and matching."""

import pytest
from reportsync.errors import WatermarkRequiredError
from reportsync.models import WatermarkParams
from reportsync.pipeline.watermark import (
    WatermarkCodec,
    escape_title,
    is_watermark_title,
    require_watermark,
)

IMAGE = "https://cml.dev/watermark.png"


@pytest.fixture
def codec():
    return WatermarkCodec(image_url=IMAGE)


class TestRender:
    def test_plain_label(self, codec):
        assert codec.render(WatermarkParams(label="nightly")) == f'![]({IMAGE} "CML watermark nightly")'

    def test_empty_label_has_no_trailing_space(self, codec):
        assert codec.render(WatermarkParams()) == f'![]({IMAGE} "CML watermark")'

    def test_placeholders_substituted(self, codec):
        token = codec.render(WatermarkParams(label="{workflow}-{run}", workflow_id="train", run_id="7"))
        assert '"CML watermark train-7"' in token

    def test_missing_placeholder_values_become_empty(self, codec):
        token = codec.render(WatermarkParams(label="run {run}"))
        assert '"CML watermark run"' in token

    def test_title_is_escaped(self, codec):
        token = codec.render(WatermarkParams(label="my_report*[x]<y>"))
        assert r'"CML watermark my\_report\*\[x]\<y>"' in token

    def test_escape_order(self):
        assert escape_title("a_b*c[d<e") == r"a\_b\*c\[d\<e"


class TestMatches:
    def test_round_trip(self, codec):
        token = codec.render(WatermarkParams(label="nightly_train"))
        body = f"# Report\n\nsome text\n\n{token}"
        assert WatermarkCodec.matches(body, token)

    def test_different_labels_do_not_match(self, codec):
        a = codec.render(WatermarkParams(label="a"))
        b = codec.render(WatermarkParams(label="b"))
        assert not WatermarkCodec.matches(f"report\n\n{a}", b)

    def test_unlabelled_does_not_match_labelled(self, codec):
        plain = codec.render(WatermarkParams())
        labelled = codec.render(WatermarkParams(label="nightly"))
        assert not WatermarkCodec.matches(f"x\n\n{labelled}", plain)

    def test_different_runs_do_not_match(self, codec):
        run_1 = codec.render(WatermarkParams(label="{workflow}-{run}", workflow_id="w", run_id="1"))
        run_2 = codec.render(WatermarkParams(label="{workflow}-{run}", workflow_id="w", run_id="2"))
        assert WatermarkCodec.matches(f"report\n\n{run_1}", run_1)
        assert WatermarkCodec.matches(f"report\n\n{run_2}", run_2)
        assert not WatermarkCodec.matches(f"report\n\n{run_1}", run_2)
        assert not WatermarkCodec.matches(f"report\n\n{run_2}", run_1)

    def test_empty_token_never_matches(self):
        assert not WatermarkCodec.matches("anything", "")

    def test_is_watermark_title(self):
        assert is_watermark_title("CML watermark nightly")
        assert not is_watermark_title("training loss")
        assert not is_watermark_title(None)


class TestRequireWatermark:
    @pytest.mark.parametrize("update,watch", [(True, False), (False, True), (True, True)])
    def test_removed_watermark_with_update_fails(self, update, watch):
        with pytest.raises(WatermarkRequiredError):
            require_watermark(rm_watermark=True, update=update, watch=watch)

    def test_removed_watermark_for_new_comment_is_fine(self):
        require_watermark(rm_watermark=True, update=False, watch=False)

    def test_kept_watermark_is_fine(self):
        require_watermark(rm_watermark=False, update=True, watch=True)
