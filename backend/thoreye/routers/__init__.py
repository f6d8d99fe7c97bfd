"""ThorEye Audit Engine - API Routers"""
from .auth import router as auth_router
from .admin import router as admin_router
from .forms import router as forms_router
from .reports import router as reports_router
from .rebuttals import router as rebuttals_router
from .ata import router as ata_router

__all__ = [
    "auth_router",
    "admin_router",
    "forms_router",
    "reports_router",
    "rebuttals_router",
    "ata_router",
]
