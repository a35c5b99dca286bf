"""HTTP routers."""

from preanesthesia.api.identity import router as identity_router
from preanesthesia.api.sessions import router as sessions_router

__all__ = ["identity_router", "sessions_router"]
