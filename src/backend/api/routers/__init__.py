"""
API routers package.
"""

from api.routers.logs import router as logs_router
from api.routers.query import router as query_router
from api.routers.settings import router as settings_router
from api.routers.validation import router as validation_router

__all__ = ["logs_router", "query_router", "settings_router", "validation_router"]
