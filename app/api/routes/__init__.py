from __future__ import annotations

from app.api.routes.ads import router as ads_router
from app.api.routes.health import router as health_router

__all__ = ["ads_router", "health_router"]
