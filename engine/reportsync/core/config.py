"""
reportsync — Engine configuration.
Loads .env automatically, then reads all settings from environment variables.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping
from urllib.parse import urlparse

from dotenv import load_dotenv

load_dotenv(Path.cwd() / ".env")

GITHUB = "github"
GITLAB = "gitlab"
BITBUCKET = "bitbucket"

TOKEN_VARIABLES = ["REPO_TOKEN", "repo_token", "GITHUB_TOKEN", "GITLAB_TOKEN", "BITBUCKET_TOKEN"]


@dataclass(frozen=True)
class AssetStoreConfig:
    """Where uploaded report assets are stored."""
    endpoint: str
    timeout: float
    magic_file: str | None


@dataclass(frozen=True)
class GitConfig:
    """Identity used for commits made by the engine."""
    user_name: str
    user_email: str
    remote: str


@dataclass(frozen=True)
class AppConfig:
    """Top-level engine configuration."""
    assets: AssetStoreConfig
    git: GitConfig
    watermark_image: str
    watch_stability_threshold: float


def _load_config() -> AppConfig:
    return AppConfig(
        assets=AssetStoreConfig(
            endpoint=os.getenv("REPORTSYNC_ASSET_ENDPOINT", "https://asset.cml.dev"),
            timeout=float(os.getenv("REPORTSYNC_UPLOAD_TIMEOUT", "60")),
            magic_file=os.getenv("REPORTSYNC_MAGIC_FILE") or None,
        ),
        git=GitConfig(
            user_name=os.getenv("REPORTSYNC_GIT_USER_NAME", "Olivaw[bot]"),
            user_email=os.getenv("REPORTSYNC_GIT_USER_EMAIL", "olivaw@iterative.ai"),
            remote=os.getenv("REPORTSYNC_GIT_REMOTE", "origin"),
        ),
        watermark_image=os.getenv("REPORTSYNC_WATERMARK_IMAGE", "https://cml.dev/watermark.png"),
        watch_stability_threshold=float(os.getenv("REPORTSYNC_WATCH_STABILITY_THRESHOLD", "2.0")),
    )


def infer_token(env: Mapping[str, str] | None = None) -> str | None:
    """Return the first repository token found in the environment."""
    env = os.environ if env is None else env
    for name in TOKEN_VARIABLES:
        if env.get(name):
            return env[name]
    return None


def infer_driver_name(repo: str | None = None, env: Mapping[str, str] | None = None) -> str | None:
    """Guess the hosting platform from the repository URL, then from CI variables."""
    env = os.environ if env is None else env
    if repo:
        host = urlparse(repo).hostname or ""
        if host == "github.com":
            return GITHUB
        if host == "gitlab.com":
            return GITLAB
        if host in ("bitbucket.com", "bitbucket.org"):
            return BITBUCKET

    if env.get("GITHUB_REPOSITORY"):
        return GITHUB
    if env.get("CI_PROJECT_URL"):
        return GITLAB
    if env.get("BITBUCKET_REPO_UUID"):
        return BITBUCKET
    return None


settings = _load_config()
