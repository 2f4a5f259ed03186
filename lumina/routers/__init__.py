"""
API routers package.
"""
from lumina.routers.auth import router as auth_router
from lumina.routers.galleries import router as galleries_router
from lumina.routers.photos import router as photos_router
from lumina.routers.share import router as share_router
from lumina.routers.invoices import router as invoices_router
from lumina.routers.health import router as health_router

__all__ = [
    "auth_router",
    "galleries_router",
    "photos_router",
    "share_router",
    "invoices_router",
    "health_router",
]
