"""Populates the request auth context from incoming headers."""
from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware

from core.infrastructure.context import set_auth_context

META_TOKEN_HEADER = "x-meta-access-token"


def extract_meta_token(request: Request) -> str:
    # Dedicated header wins; a bearer Authorization header is accepted too
    token = request.headers.get(META_TOKEN_HEADER, "").strip()
    if token:
        return token
    auth = request.headers.get("authorization", "").strip()
    if auth.lower().startswith("bearer "):
        return auth[7:].strip()
    return ""


class MetaAuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        set_auth_context(
            access_token=extract_meta_token(request),
            client_code=request.headers.get("clientCode", ""),
        )
        return await call_next(request)
