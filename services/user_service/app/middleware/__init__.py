"""Middleware components for the User Service."""

from services.user_service.app.middleware.request_context import (
    RequestContextMiddleware,
    resolve_locale,
)

__all__ = [
    "RequestContextMiddleware",
    "resolve_locale",
]
