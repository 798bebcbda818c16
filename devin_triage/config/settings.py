"""
Configuration system using Pydantic for type-safe settings management.

Settings come from, in increasing priority: field defaults, a ``.env``
file, process environment variables, and (when loaded with ``from_yaml``)
a YAML file. The Devin and GitHub sections read the conventional
``DEVIN_*`` and ``GITHUB_*`` variables directly:

    DEVIN_API_KEY, DEVIN_API_ENDPOINT
    GITHUB_TOKEN, GITHUB_OWNER, GITHUB_REPO

The core never reads the environment itself; it receives a
``TriageSettings`` object through ``devin_triage.providers.factory``.
"""

from __future__ import annotations

import os
import re
from pathlib import Path

import yaml
from pydantic import Field, SecretStr, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from devin_triage.exceptions import ConfigurationError


class DevinSettings(BaseSettings):
    """Devin API configuration.

    Without ``api_key`` the workflow runs in fallback-only mode: scope and
    plan use local heuristics and execute is refused.
    """

    model_config = SettingsConfigDict(env_prefix="DEVIN_", env_file=".env", extra="ignore")

    api_key: SecretStr | None = Field(default=None, description="Devin API key (bearer token)")
    api_endpoint: str = Field(default="https://api.devin.ai/v1", description="Devin API base URL")
    request_timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")
    max_connections: int = Field(default=10, ge=1, le=100, description="HTTP connection pool size")

    @field_validator("api_key", mode="before")
    @classmethod
    def _blank_key_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("api_endpoint")
    @classmethod
    def _validate_endpoint(cls, value: str) -> str:
        if not (value.startswith("http://") or value.startswith("https://")):
            raise ValueError(f"api_endpoint must start with http:// or https://, got: {value}")
        return value.rstrip("/")

    @property
    def has_credentials(self) -> bool:
        return self.api_key is not None


class GitHubSettings(BaseSettings):
    """GitHub ticket source configuration."""

    model_config = SettingsConfigDict(env_prefix="GITHUB_", env_file=".env", extra="ignore")

    token: SecretStr | None = Field(default=None, description="GitHub personal access token")
    owner: str | None = Field(default=None, description="Repository owner/organization")
    repo: str | None = Field(default=None, description="Repository name")
    base_url: str = Field(default="https://api.github.com", description="GitHub API base URL")

    @property
    def is_complete(self) -> bool:
        return bool(self.token and self.owner and self.repo)


class TriageSettings(BaseSettings):
    """Top-level devin-triage settings."""

    model_config = SettingsConfigDict(
        env_prefix="TRIAGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    devin: DevinSettings = Field(default_factory=DevinSettings)
    github: GitHubSettings = Field(default_factory=GitHubSettings)
    log_level: str = Field(default="INFO", description="Minimum log level")

    @classmethod
    def load(cls, config_path: str | None = None) -> TriageSettings:
        """Load settings from a YAML file if it exists, else from the environment.

        Raises:
            ConfigurationError: If the settings are invalid
        """
        if config_path and Path(config_path).exists():
            return cls.from_yaml(config_path)
        try:
            return cls()
        except ValidationError as e:
            raise ConfigurationError(f"Invalid configuration: {e}") from e

    @classmethod
    def from_yaml(cls, config_path: str) -> TriageSettings:
        """Load settings from YAML file with environment variable interpolation.

        Supports ``${VAR_NAME}`` and ``${VAR_NAME:-default}`` placeholders.

        Raises:
            ConfigurationError: If config file is invalid or missing required fields
        """
        config_file = Path(config_path)
        if not config_file.exists():
            raise ConfigurationError(f"Configuration file not found: {config_path}")

        try:
            with open(config_file) as f:
                yaml_content = f.read()
        except OSError as e:
            raise ConfigurationError(f"Cannot read configuration file: {config_path}") from e

        try:
            yaml_content = cls._interpolate_env_vars(yaml_content)
        except ValueError as e:
            raise ConfigurationError(f"Invalid environment variable reference in config: {e}") from e

        try:
            config_dict = yaml.safe_load(yaml_content) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML syntax in {config_path}: {e}") from e

        if not isinstance(config_dict, dict):
            raise ConfigurationError("Configuration must be a YAML object, not a list or scalar")

        try:
            # Build sections explicitly so unset fields still fall back to the environment
            sections = {
                "devin": DevinSettings(**(config_dict.pop("devin", None) or {})),
                "github": GitHubSettings(**(config_dict.pop("github", None) or {})),
            }
            return cls(**sections, **config_dict)
        except ValidationError as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}") from e
        except TypeError as e:
            raise ConfigurationError(f"Missing or invalid configuration fields: {e}") from e

    @staticmethod
    def _interpolate_env_vars(content: str) -> str:
        """Interpolate ``${VAR_NAME}`` placeholders with environment variables.

        YAML comment lines are left unchanged.

        Raises:
            ValueError: If a required environment variable is not set
        """
        pattern = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")

        def replace_var(match: re.Match[str]) -> str:
            var_name = match.group(1)
            default_value = match.group(2)
            value = os.getenv(var_name)

            if value is not None:
                return value
            elif default_value is not None:
                return default_value
            else:
                raise ValueError(f"Environment variable {var_name} is not set")

        def process_line(line: str) -> str:
            if line.lstrip().startswith("#"):
                return line
            return pattern.sub(replace_var, line)

        return "\n".join(process_line(line) for line in content.split("\n"))
