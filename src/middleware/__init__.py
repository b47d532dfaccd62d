"""
Middleware Module.

CORS and request logging for the FastAPI application.
"""

from fastapi import FastAPI

from src.middleware.cors import setup_cors
from src.middleware.logging import setup_logging


def setup_middleware(app: FastAPI) -> None:
    """
    Install CORS first, then request logging.

    Args:
        app: FastAPI application instance
    """
    setup_cors(app)
    setup_logging(app)
