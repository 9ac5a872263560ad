"""Asynchronous optimization jobs."""

from .manager import JobManager

__all__ = ["JobManager"]
