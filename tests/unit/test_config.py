"""Unit tests for environment-driven configuration."""

from reportsync.core.config import (
    BITBUCKET,
    GITHUB,
    GITLAB,
    infer_driver_name,
    infer_token,
    settings,
)


class TestSettings:
    def test_defaults_are_loaded(self):
        assert settings.assets.endpoint
        assert settings.assets.timeout > 0
        assert settings.git.remote
        assert settings.watch_stability_threshold >= 0


class TestInferToken:
    def test_first_variable_wins(self):
        env = {"GITHUB_TOKEN": "gh", "REPO_TOKEN": "repo"}
        assert infer_token(env) == "repo"

    def test_empty_values_are_skipped(self):
        assert infer_token({"REPO_TOKEN": "", "GITLAB_TOKEN": "gl"}) == "gl"

    def test_none_when_missing(self):
        assert infer_token({}) is None


class TestInferDriverName:
    def test_from_repo_host(self):
        assert infer_driver_name("https://github.com/acme/models", env={}) == GITHUB
        assert infer_driver_name("https://gitlab.com/acme/models", env={}) == GITLAB
        assert infer_driver_name("https://bitbucket.org/acme/models", env={}) == BITBUCKET

    def test_from_ci_variables(self):
        assert infer_driver_name("https://git.internal/acme", env={"CI_PROJECT_URL": "x"}) == GITLAB
        assert infer_driver_name(None, env={"GITHUB_REPOSITORY": "acme/models"}) == GITHUB
        assert infer_driver_name(None, env={"BITBUCKET_REPO_UUID": "{1}"}) == BITBUCKET

    def test_none_when_unknown(self):
        assert infer_driver_name("https://git.internal/acme", env={}) is None
