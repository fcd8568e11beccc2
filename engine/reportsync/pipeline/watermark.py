r"""
reportsync — Report watermarks.

Every report ends with an invisible image whose title identifies the logical
report, e.g.

    ![](https://cml.dev/watermark.png "CML watermark nightly\_train")

Platforms re-escape `_ * [ <` when they hand back a comment body, so the
title is stored pre-escaped; matching is a plain substring test against the
escaped token.
"""

from __future__ import annotations

from reportsync.core.config import settings
from reportsync.errors import WatermarkRequiredError
from reportsync.models import WatermarkParams

WATERMARK_PREFIX = "CML watermark"

# Applied in this order.
_ESCAPES = [
    ("_", "\\_"),
    ("*", "\\*"),
    ("[", "\\["),
    ("<", "\\<"),
]


def escape_title(title: str) -> str:
    for char, escaped in _ESCAPES:
        title = title.replace(char, escaped)
    return title


def is_watermark_title(title: str | None) -> bool:
    return bool(title) and title.startswith(WATERMARK_PREFIX)


def require_watermark(rm_watermark: bool, update: bool, watch: bool = False) -> None:
    """Updating needs a watermark to find the previous comment; watch mode updates from its second cycle."""
    if rm_watermark and (update or watch):
        raise WatermarkRequiredError()


class WatermarkCodec:
    def __init__(self, image_url: str | None = None):
        self.image_url = image_url or settings.watermark_image

    def render(self, params: WatermarkParams) -> str:
        label = params.label
        label = label.replace("{workflow}", params.workflow_id or "")
        label = label.replace("{run}", params.run_id or "")
        title = escape_title(f"{WATERMARK_PREFIX} {label}".strip())
        return f'![]({self.image_url} "{title}")'

    @staticmethod
    def matches(body: str, token: str) -> bool:
        return bool(token) and token in body
