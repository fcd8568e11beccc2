"""
reportsync — Report, comment and asset contracts.

The comment reconciler, the asset pipeline and the drivers all exchange
these typed structures instead of raw dicts.
"""

from __future__ import annotations

import enum
from typing import Any, Literal

from pydantic import BaseModel, Field


class TargetKind(str, enum.Enum):
    COMMIT = "commit"
    PR = "pr"


class CommentTarget(BaseModel):
    """Where a report is posted. Resolved outside the engine and passed through as-is."""

    kind: TargetKind
    identifier: str
    extra: dict[str, Any] = Field(default_factory=dict)


class Comment(BaseModel):
    id: str
    body: str
    url: str = ""


class WatermarkParams(BaseModel):
    label: str = ""
    workflow_id: str | None = None
    run_id: str | None = None


class Report(BaseModel):
    """A report body plus the watermark that identifies it across edits."""

    body: str
    watermark: str = ""

    def render(self) -> str:
        return f"{self.body}\n\n{self.watermark}"


class AssetReference(BaseModel):
    url: str
    kind: Literal["image", "link", "definition"]
    title: str | None = None


class UploadResult(BaseModel):
    uri: str
    mime: str
    size: int = Field(ge=0)
