"""Retail Ops — JWT auth middleware: extracts the bearer token, sets request.state.user."""
import logging
from typing import Callable
from uuid import UUID

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware

from app.api.deps import CurrentUser
from app.core.security import decode_token

logger = logging.getLogger(__name__)


class JWTAuthMiddleware(BaseHTTPMiddleware):
    """Extract JWT from Authorization header and populate request.state.user / store_id."""

    PUBLIC_PATHS = {
        "/health",
        "/api/v1/docs",
        "/api/v1/redoc",
        "/api/v1/openapi.json",
    }

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.user = None
        request.state.store_id = None

        path = request.url.path
        if path in self.PUBLIC_PATHS or path.startswith("/api/v1/docs") or path.startswith("/api/v1/redoc"):
            return await call_next(request)

        auth = request.headers.get("Authorization", "")
        if auth.startswith("Bearer "):
            token = auth[7:].strip()
            payload = decode_token(token)
            if payload and payload.get("type") == "access":
                sub = payload.get("sub")
                store_id = payload.get("store_id")
                if sub and store_id:
                    try:
                        request.state.user = CurrentUser(
                            id=UUID(sub),
                            email=payload.get("email") or "unknown",
                            store_id=UUID(store_id),
                            role=payload.get("role", "STAFF"),
                        )
                        request.state.store_id = store_id
                    except ValueError:
                        logger.warning("Rejected access token with malformed subject or store claim")
            else:
                logger.debug("Ignoring invalid or non-access bearer token")

        return await call_next(request)
