"""API routers."""

from app.routers.admin import router as admin_router
from app.routers.health import router as health_router
from app.routers.reports import router as reports_router
from app.routers.users import router as users_router

__all__ = ["admin_router", "health_router", "reports_router", "users_router"]
