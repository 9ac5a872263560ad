"""Work estimate service."""

from .service import WorkEstimateService

__all__ = ["WorkEstimateService"]
