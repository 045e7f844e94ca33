"""
Dependency injection for the API service.
Provides the aggregator service and its query facade to route handlers.
"""
from __future__ import annotations

from typing import TYPE_CHECKING, Optional

from fastapi import HTTPException

from builder.facade import QueryFacade

if TYPE_CHECKING:
    from scheduler.service import AggregatorService

# Module-level singleton, set at startup (or by tests)
_service: Optional["AggregatorService"] = None


def init_dependencies(service: Optional["AggregatorService"]) -> None:
    """Attach the running aggregator. Passing None detaches it."""
    global _service
    _service = service


def get_service() -> "AggregatorService":
    """FastAPI dependency: returns the attached aggregator service."""
    if _service is None:
        raise HTTPException(status_code=503, detail="aggregator not running")
    return _service


def get_facade() -> QueryFacade:
    """FastAPI dependency: returns the read-only query facade."""
    return get_service().facade
