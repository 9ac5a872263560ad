"""Route group exports."""

from . import health, jobs, optimization, work_estimates

__all__ = ["health", "jobs", "optimization", "work_estimates"]
