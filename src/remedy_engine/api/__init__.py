"""Control-plane HTTP API."""

from .routes import create_router
from .schemas import CancelResponse, HealthResponse, HealthStatus, HistoryResponse

__all__ = [
    "CancelResponse",
    "HealthResponse",
    "HealthStatus",
    "HistoryResponse",
    "create_router",
]
