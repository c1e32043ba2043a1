"""Request-scoped credentials for the Meta Graph API.

Set once per request by ``MetaAuthMiddleware`` and read wherever a live
Graph call is made (interest search). contextvars carry the value across
awaits and into background tasks started by the request.

Usage:
    from core.infrastructure.context import auth_context
    token = auth_context.access_token
"""

from contextvars import ContextVar
from dataclasses import dataclass


@dataclass(frozen=True)
class AuthContext:
    access_token: str = ""
    client_code: str = ""


_auth_context: ContextVar[AuthContext] = ContextVar(
    "auth_context", default=AuthContext()
)


def set_auth_context(access_token: str, client_code: str = "") -> None:
    _auth_context.set(AuthContext(access_token=access_token, client_code=client_code))


def get_auth_context() -> AuthContext:
    return _auth_context.get()


class _AuthContextAccessor:
    @property
    def access_token(self) -> str:
        return _auth_context.get().access_token

    @property
    def client_code(self) -> str:
        return _auth_context.get().client_code


auth_context = _AuthContextAccessor()
