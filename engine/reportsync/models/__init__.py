"""reportsync data models — typed contracts shared by the engine and its drivers."""

from reportsync.models.report import (
    AssetReference,
    Comment,
    CommentTarget,
    Report,
    TargetKind,
    UploadResult,
    WatermarkParams,
)
from reportsync.models.platform import (
    AutoMergeMode,
    LogLevel,
    PRDescriptor,
    PullRequest,
    Runner,
    RunnerJob,
    RunnerLogEvent,
    RunnerStatus,
)

__all__ = [
    "AssetReference",
    "Comment",
    "CommentTarget",
    "Report",
    "TargetKind",
    "UploadResult",
    "WatermarkParams",
    "AutoMergeMode",
    "LogLevel",
    "PRDescriptor",
    "PullRequest",
    "Runner",
    "RunnerJob",
    "RunnerLogEvent",
    "RunnerStatus",
]
