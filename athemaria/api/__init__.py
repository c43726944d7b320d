"""API package for Athemaria"""

from .dependencies import (
    AppServices,
    get_services,
    get_current_user,
    get_optional_user,
    require_admin,
)
from .routes import router
from .admin import router as admin_router
from .account import router as account_router

__all__ = [
    "AppServices",
    "get_services",
    "get_current_user",
    "get_optional_user",
    "require_admin",
    "router",
    "admin_router",
    "account_router",
]
