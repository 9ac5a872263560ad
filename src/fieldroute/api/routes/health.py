"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, status

from ..deps import ProviderDep, StoreDep

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/osrm", status_code=status.HTTP_200_OK)
def health_osrm(provider: ProviderDep) -> dict:
    """Check travel-time provider health."""
    try:
        return {"service": provider.name, "healthy": provider.check_health()}
    except Exception as e:
        return {"service": provider.name, "healthy": False, "error": str(e)}


@router.get("/health/database", status_code=status.HTTP_200_OK)
def check_database(store: StoreDep) -> dict:
    """Check the configured store's connectivity."""
    return store.health()
