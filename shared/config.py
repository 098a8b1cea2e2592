"""
Configuration for the triage tools.

Settings come from the `triage:` section of config.yaml, with secrets
overridable from the environment. The resulting `TriageConfig` is passed
explicitly to every factory; nothing below the launcher reads the
environment or the config file on its own.
"""

import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

import yaml

from shared.logging import get_logger

from .errors import ConfigurationError

log = get_logger("shared", "config")

TRIAGE_ROOT = Path(__file__).resolve().parent.parent
DEFAULT_CONFIG_PATH = TRIAGE_ROOT / "config.yaml"

REPOSITORY_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+/[A-Za-z0-9_.-]+$")

# Environment variables that override secrets from config.yaml
ENV_OVERRIDES = {
    "intercom_token": "INTERCOM_ACCESS_TOKEN",
    "github_token": "GITHUB_TOKEN",
    "openai_api_key": "OPENAI_API_KEY",
    "anthropic_api_key": "ANTHROPIC_API_KEY",
}

LLM_BACKENDS = ("openai", "claude")


@dataclass
class TriageConfig:
    """All operator-supplied settings for one session."""

    # Helpdesk
    intercom_token: Optional[str] = None
    intercom_base_url: str = "https://api.intercom.io"
    intercom_timeout_seconds: float = 10.0

    # Issue tracker
    github_token: Optional[str] = None
    github_base_url: str = "https://api.github.com"
    repositories: list[str] = field(default_factory=list)
    issue_repository: Optional[str] = None  # Where new issues are filed
    github_timeout_seconds: float = 15.0

    # LLM
    llm_backend: str = "openai"
    openai_api_key: Optional[str] = None
    anthropic_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_timeout_seconds: float = 30.0
    use_local_inference: bool = False
    local_url: str = "http://127.0.0.1:11434/v1"
    local_model: str = "llama3.2:3b"

    # Duplicate analysis
    max_results: int = 10
    use_ai_judge: bool = True
    search_concurrency: int = 1
    scoring_concurrency: int = 4

    # Logging
    log_level: str = "INFO"
    log_json: bool = False

    @property
    def remote_llm_key(self) -> Optional[str]:
        """Credential for the configured remote backend."""
        if self.llm_backend == "claude":
            return self.anthropic_api_key
        return self.openai_api_key

    @property
    def target_repository(self) -> Optional[str]:
        """Repository new issues are filed in (defaults to the first scope)."""
        if self.issue_repository:
            return self.issue_repository
        return self.repositories[0] if self.repositories else None

    def validate(self) -> list[str]:
        """
        Check the configuration.

        Returns:
            List of human-readable problems (empty when valid)
        """
        problems = []

        if not self.github_token:
            problems.append("GitHub token is required")

        if self.llm_backend not in LLM_BACKENDS:
            problems.append(
                f"Unknown LLM backend '{self.llm_backend}' "
                f"(expected one of: {', '.join(LLM_BACKENDS)})"
            )

        if not self.use_local_inference and not self.remote_llm_key:
            problems.append(
                f"An API key for '{self.llm_backend}' is required when not using local inference"
            )

        if not self.repositories:
            problems.append("At least one repository must be configured")

        for repo in self.repositories:
            if not validate_repository(repo):
                problems.append(f"Repository '{repo}' must use the format owner/name")

        if self.issue_repository and not validate_repository(self.issue_repository):
            problems.append(
                f"Issue repository '{self.issue_repository}' must use the format owner/name"
            )

        if self.max_results < 1:
            problems.append("max_results must be at least 1")

        if self.search_concurrency < 1 or self.scoring_concurrency < 1:
            problems.append("Concurrency limits must be at least 1")

        return problems

    def require_valid(self) -> "TriageConfig":
        """Raise ConfigurationError unless the configuration is valid."""
        problems = self.validate()
        if problems:
            raise ConfigurationError(problems)
        return self

    @classmethod
    def from_dict(cls, data: dict) -> "TriageConfig":
        """Build from the `triage:` section of config.yaml."""
        intercom = data.get("intercom", {}) or {}
        github = data.get("github", {}) or {}
        llm = data.get("llm", {}) or {}
        dedup = data.get("dedup", {}) or {}
        logging_cfg = data.get("logging", {}) or {}

        defaults = cls()
        llm_backend = llm.get("backend", defaults.llm_backend)
        llm_key = llm.get("api_key")

        return cls(
            intercom_token=intercom.get("token"),
            intercom_base_url=intercom.get("base_url", defaults.intercom_base_url),
            intercom_timeout_seconds=intercom.get(
                "timeout_seconds", defaults.intercom_timeout_seconds
            ),
            github_token=github.get("token"),
            github_base_url=github.get("base_url", defaults.github_base_url),
            repositories=[r.strip() for r in github.get("repositories", []) or []],
            issue_repository=github.get("issue_repository"),
            github_timeout_seconds=github.get(
                "timeout_seconds", defaults.github_timeout_seconds
            ),
            llm_backend=llm_backend,
            openai_api_key=llm_key if llm_backend == "openai" else None,
            anthropic_api_key=llm_key if llm_backend == "claude" else None,
            llm_model=llm.get("model"),
            llm_timeout_seconds=llm.get("timeout_seconds", defaults.llm_timeout_seconds),
            use_local_inference=bool(llm.get("use_local_inference", False)),
            local_url=llm.get("local_url", defaults.local_url),
            local_model=llm.get("local_model", defaults.local_model),
            max_results=int(dedup.get("max_results", defaults.max_results)),
            use_ai_judge=bool(dedup.get("use_ai_judge", True)),
            search_concurrency=int(dedup.get("search_concurrency", defaults.search_concurrency)),
            scoring_concurrency=int(dedup.get("scoring_concurrency", defaults.scoring_concurrency)),
            log_level=logging_cfg.get("level", defaults.log_level),
            log_json=bool(logging_cfg.get("json", False)),
        )


def validate_repository(repository: str) -> bool:
    """Check a repository scope has the exact `owner/name` shape."""
    return bool(REPOSITORY_PATTERN.match(repository or ""))


def load_config(
    config_path: Optional[Path] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> TriageConfig:
    """
    Load configuration from YAML and apply environment overrides.

    Args:
        config_path: Path to config.yaml (defaults to the repository root)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        TriageConfig (not yet validated)
    """
    if config_path is None:
        config_path = DEFAULT_CONFIG_PATH
    if environ is None:
        environ = os.environ

    data = {}
    try:
        with open(config_path, encoding="utf-8") as f:
            full_config = yaml.safe_load(f) or {}
        data = full_config.get("triage", {}) or {}
    except FileNotFoundError:
        log.info("config.file.missing", config_path=str(config_path))
    except yaml.YAMLError as e:
        log.warning("config.file.invalid", config_path=str(config_path), error=str(e))

    config = TriageConfig.from_dict(data)

    for attr, env_var in ENV_OVERRIDES.items():
        value = environ.get(env_var)
        if value:
            setattr(config, attr, value)

    log.debug(
        "config.loaded",
        config_path=str(config_path),
        repositories=config.repositories,
        llm_backend=config.llm_backend,
        use_local_inference=config.use_local_inference,
    )
    return config
