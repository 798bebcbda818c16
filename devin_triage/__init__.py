"""devin-triage: drive Devin sessions to scope, plan and execute GitHub issues."""

__version__ = "0.1.0"
