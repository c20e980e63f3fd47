# ems/routers/__init__.py
from .auth import auth_router
from .employees import router as employees_router

__all__ = [
    "auth_router",
    "employees_router",
]
