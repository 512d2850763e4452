"""API routes module."""

from . import health, jobs, library, sources, sync

__all__ = ["health", "jobs", "library", "sources", "sync"]
