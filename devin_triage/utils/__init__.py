"""Shared utilities: logging setup and HTTP connection pooling."""
