"""API routes module."""

from src.api.routes.dwv import router as dwv_router

__all__ = ["dwv_router"]
