"""Tests for configuration loading and validation."""

import pytest

from shared.config import TriageConfig, load_config, validate_repository
from shared.errors import ConfigurationError, describe_error, RateLimitedError


CONFIG_YAML = """
triage:
  intercom:
    token: yaml-intercom
  github:
    token: yaml-github
    repositories:
      - acme/messenger
      - " acme/web "
  llm:
    backend: claude
    api_key: yaml-claude
  dedup:
    max_results: 5
    use_ai_judge: false
    scoring_concurrency: 2
"""


@pytest.fixture
def config_file(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text(CONFIG_YAML)
    return path


class TestValidateRepository:

    @pytest.mark.parametrize("repo", ["acme/messenger", "a-b/c.d", "org_1/repo-2"])
    def test_valid(self, repo):
        assert validate_repository(repo)

    @pytest.mark.parametrize("repo", ["acme", "acme/", "/repo", "a/b/c", "acme messenger/x", ""])
    def test_invalid(self, repo):
        assert not validate_repository(repo)


class TestLoadConfig:
    """Tests for load_config."""

    def test_reads_yaml(self, config_file):
        config = load_config(config_file, environ={})

        assert config.intercom_token == "yaml-intercom"
        assert config.github_token == "yaml-github"
        assert config.repositories == ["acme/messenger", "acme/web"]
        assert config.llm_backend == "claude"
        assert config.anthropic_api_key == "yaml-claude"
        assert config.openai_api_key is None
        assert config.max_results == 5
        assert config.use_ai_judge is False
        assert config.scoring_concurrency == 2
        assert config.search_concurrency == 1

    def test_environment_overrides_secrets(self, config_file):
        config = load_config(config_file, environ={
            "GITHUB_TOKEN": "env-github",
            "OPENAI_API_KEY": "env-openai",
        })

        assert config.github_token == "env-github"
        assert config.openai_api_key == "env-openai"
        assert config.intercom_token == "yaml-intercom"

    def test_missing_file_gives_defaults(self, tmp_path):
        config = load_config(tmp_path / "nope.yaml", environ={})

        assert config.repositories == []
        assert config.llm_backend == "openai"
        assert config.max_results == 10


class TestValidation:
    """Tests for TriageConfig.validate."""

    def test_valid_config(self):
        config = TriageConfig(
            github_token="t", openai_api_key="k", repositories=["acme/messenger"],
        )
        assert config.validate() == []
        assert config.require_valid() is config

    def test_missing_everything(self):
        problems = TriageConfig().validate()
        assert "GitHub token is required" in problems
        assert "At least one repository must be configured" in problems
        assert any("API key" in p for p in problems)

    def test_local_inference_needs_no_key(self):
        config = TriageConfig(
            github_token="t", repositories=["acme/messenger"], use_local_inference=True,
        )
        assert config.validate() == []

    def test_bad_repository(self):
        config = TriageConfig(github_token="t", openai_api_key="k", repositories=["acme"])
        with pytest.raises(ConfigurationError) as exc_info:
            config.require_valid()
        assert exc_info.value.problems == ["Repository 'acme' must use the format owner/name"]

    def test_target_repository(self):
        config = TriageConfig(repositories=["acme/messenger", "acme/web"])
        assert config.target_repository == "acme/messenger"
        config.issue_repository = "acme/bugs"
        assert config.target_repository == "acme/bugs"


class TestDescribeError:

    def test_triage_error(self):
        kind, message, hint = describe_error(RateLimitedError("slow down", hint="wait"))
        assert (kind, message, hint) == ("rate-limit", "slow down", "wait")

    def test_foreign_error(self):
        assert describe_error(KeyError("x")) == ("unknown", "'x'", None)

    def test_configuration_error_is_validation(self):
        kind, message, _ = describe_error(ConfigurationError(["a", "b"]))
        assert kind == "validation"
        assert message == "Configuration errors: a; b"
