"""
Middleware modules for the FastAPI application.
"""
from .request_logging import RequestLoggingMiddleware

__all__ = ["RequestLoggingMiddleware"]
