"""Configuration system for devin-triage.

Key Components:
    - TriageSettings: Main configuration container with YAML loading support
    - DevinSettings: Devin API credentials and connection settings
    - GitHubSettings: GitHub repository and token settings

Example:
    >>> from devin_triage.config import TriageSettings
    >>> settings = TriageSettings.load("devin-triage.yaml")
    >>> settings.devin.has_credentials
    True
"""

from devin_triage.config.settings import DevinSettings, GitHubSettings, TriageSettings

__all__ = [
    "DevinSettings",
    "GitHubSettings",
    "TriageSettings",
]
