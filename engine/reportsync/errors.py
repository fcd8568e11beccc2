"""
reportsync — Structured error catalog.

Every error has a code, human message, and suggested fix.
Callers surface a single descriptive message; stack traces stay internal.
"""

from __future__ import annotations

from typing import Any


class ReportSyncError(Exception):
    """Base error with structured code + suggestion."""

    def __init__(self, code: str, message: str, suggestion: str = "", detail: Any = None):
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.detail = detail
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "error_code": self.code,
            "message": self.message,
        }
        if self.suggestion:
            d["suggestion"] = self.suggestion
        if self.detail:
            d["detail"] = self.detail
        return d


class ConfigurationError(ReportSyncError):
    """Raised before any I/O when the requested options cannot work together."""


class WatermarkRequiredError(ConfigurationError):
    def __init__(self):
        super().__init__(
            code="WATERMARK_REQUIRED",
            message="watermarks are mandatory for updateable comments",
            suggestion="Drop rm_watermark, or post without update/watch mode.",
        )


class DriverNotSetError(ConfigurationError):
    def __init__(self):
        super().__init__(
            code="DRIVER_NOT_SET",
            message="driver not set",
            suggestion="Pass a driver name or run inside a supported CI environment.",
        )


class UnknownDriverError(ConfigurationError):
    def __init__(self, name: str, known: list[str]):
        super().__init__(
            code="DRIVER_UNKNOWN",
            message=f"driver {name} unknown!",
            suggestion=f"Registered drivers: {', '.join(sorted(known)) or 'none'}.",
        )


class MarkdownFileRequiredError(ConfigurationError):
    def __init__(self):
        super().__init__(
            code="MARKDOWN_FILE_REQUIRED",
            message="watch mode needs a markdown file to watch",
            suggestion="Pass markdown_file together with watch=True.",
        )


class TargetUnresolvedError(ConfigurationError):
    def __init__(self, target: str):
        super().__init__(
            code="TARGET_UNRESOLVED",
            message=f"Cannot resolve comment target {target!r} without a target resolver",
            suggestion="Pass resolve_target to ReportSync, or post on a commit.",
        )


class CapabilityUnsupportedError(ReportSyncError):
    def __init__(self, driver: str, capability: str):
        super().__init__(
            code="CAPABILITY_UNSUPPORTED",
            message=f"{driver} does not support {capability}",
            suggestion="Use a driver that implements this operation.",
        )


class AssetNotFoundError(ReportSyncError):
    def __init__(self, path: str):
        self.path = path
        super().__init__(
            code="ASSET_NOT_FOUND",
            message=f"Asset file not found: {path}",
            suggestion="Paths in the report are resolved relative to the markdown file.",
        )


class SniffFailedError(ReportSyncError):
    def __init__(self, path: str, reason: str):
        super().__init__(
            code="MIME_SNIFF_FAILED",
            message=f"Could not detect MIME type of {path}: {reason}",
            suggestion="Check that libmagic is installed, or pass an explicit MIME type.",
        )


class AssetStoreError(ReportSyncError):
    def __init__(self, status: int, body: str = ""):
        self.status = status
        super().__init__(
            code="ASSET_STORE_ERROR",
            message=f"Asset backend returned HTTP {status}",
            suggestion="Check the asset endpoint and retry.",
            detail=body[:500] if body else None,
        )


class AssetStoreEmptyResponseError(ReportSyncError):
    def __init__(self, status: int):
        self.status = status
        super().__init__(
            code="ASSET_STORE_EMPTY_RESPONSE",
            message=f"Empty response from asset backend with status code {status}",
            suggestion="The asset backend must answer with the URI of the stored file.",
        )


class CommandError(ReportSyncError):
    def __init__(self, command: list[str], returncode: int, stdout: str = "", stderr: str = ""):
        self.command = command
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr
        super().__init__(
            code="COMMAND_FAILED",
            message=f"{' '.join(command)}\n\t{stdout}\n\t{stderr}",
            suggestion="Run the command by hand inside the repository to see the full output.",
            detail={"returncode": returncode},
        )


class RunnerNotFoundError(ReportSyncError):
    def __init__(self, name: str):
        super().__init__(
            code="RUNNER_NOT_FOUND",
            message=f"Runner not found: {name}",
            suggestion="List runners to check the name, or register the runner first.",
        )


class RepoTokenInvalidError(ReportSyncError):
    def __init__(self):
        super().__init__(
            code="REPO_TOKEN_INVALID",
            message="Bad credentials, REPO_TOKEN should be a personal access token",
            suggestion="Create a personal access token with repo scope and export it as REPO_TOKEN.",
        )
