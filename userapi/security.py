"""Authentication and authorization for the user management API."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional, TypeVar

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.authentication import AuthCredentials, AuthenticationBackend, BaseUser
from starlette.requests import HTTPConnection
from starlette.routing import Match
from starlette.types import ASGIApp, Receive, Scope, Send

from .errors import error_response
from .tokens import Principal, TokenError, TokenService

logger = logging.getLogger("userapi.auth")

AUTHENTICATION_FAILED = "Authentication failed"
ACCESS_DENIED = "Access denied"
MISSING_TOKEN = "Missing bearer token"

# Scope key holding the reason a presented token was rejected.
AUTH_FAILURE_KEY = "userapi.auth_failure"

_POLICY_ATTRIBUTE = "__authorization_policy__"

EndpointT = TypeVar("EndpointT", bound=Callable[..., object])


class AuthenticatedUser(BaseUser):
    """Starlette user wrapper around a verified :class:`Principal`."""

    def __init__(self, principal: Principal) -> None:
        self.principal = principal

    @property
    def is_authenticated(self) -> bool:
        return True

    @property
    def display_name(self) -> str:
        return self.principal.username

    @property
    def identity(self) -> str:
        return self.principal.username


class BearerTokenBackend(AuthenticationBackend):
    """Populate ``request.user`` from an ``Authorization: Bearer`` header.

    Requests without a token, or with a token that fails verification, stay
    anonymous; the rejection reason is kept on the scope for the
    authorization middleware to report.
    """

    def __init__(self, tokens: TokenService) -> None:
        self._tokens = tokens

    async def authenticate(self, conn: HTTPConnection):
        header = conn.headers.get("authorization")
        if not header:
            return None

        scheme, _, credentials = header.partition(" ")
        if scheme.lower() != "bearer":
            return None
        token = credentials.strip()
        if not token:
            conn.scope[AUTH_FAILURE_KEY] = "Malformed bearer token"
            return None

        try:
            principal = self._tokens.verify(token)
        except TokenError as exc:
            logger.info("Rejected bearer token for %s %s: %s", conn.scope.get("method"), conn.url.path, exc)
            conn.scope[AUTH_FAILURE_KEY] = str(exc)
            return None

        return AuthCredentials(["authenticated", f"role:{principal.role}"]), AuthenticatedUser(principal)


@dataclass(frozen=True)
class AuthorizationPolicy:
    roles: FrozenSet[str] = frozenset()


def require_authorization(*roles: str) -> Callable[[EndpointT], EndpointT]:
    """Mark a route handler as requiring an authenticated caller.

    When *roles* are given the caller's role claim must be one of them.
    Handlers without this marker are anonymous.
    """

    policy = AuthorizationPolicy(roles=frozenset(roles))

    def decorator(endpoint: EndpointT) -> EndpointT:
        setattr(endpoint, _POLICY_ATTRIBUTE, policy)
        return endpoint

    return decorator


def authorization_policy(endpoint: object) -> Optional[AuthorizationPolicy]:
    return getattr(endpoint, _POLICY_ATTRIBUTE, None)


class AuthorizationMiddleware:
    """Reject requests for protected routes before they reach the handler."""

    def __init__(self, app: ASGIApp) -> None:
        self.app = app

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        policy = self._resolve_policy(scope)
        if policy is None:
            await self.app(scope, receive, send)
            return

        user = scope.get("user")
        principal: Optional[Principal] = getattr(user, "principal", None)
        if user is None or not user.is_authenticated or principal is None:
            reason = scope.get(AUTH_FAILURE_KEY, MISSING_TOKEN)
            response = error_response(
                status.HTTP_401_UNAUTHORIZED,
                AUTHENTICATION_FAILED,
                reason,
                headers={"WWW-Authenticate": "Bearer"},
            )
            await response(scope, receive, send)
            return

        if policy.roles and principal.role not in policy.roles:
            logger.warning(
                "User %s with role %s denied access to %s %s",
                principal.username,
                principal.role,
                scope.get("method"),
                scope.get("path"),
            )
            response = error_response(
                status.HTTP_403_FORBIDDEN,
                ACCESS_DENIED,
                f"Role '{principal.role}' is not permitted to access this resource",
            )
            await response(scope, receive, send)
            return

        await self.app(scope, receive, send)

    @staticmethod
    def _resolve_policy(scope: Scope) -> Optional[AuthorizationPolicy]:
        routes = getattr(scope.get("app"), "routes", ())
        for route in routes:
            match, _ = route.matches(scope)
            if match == Match.FULL:
                return authorization_policy(getattr(route, "endpoint", None))
        return None


bearer_scheme = HTTPBearer(
    auto_error=False,
    scheme_name="Bearer",
    description='JWT Authorization header using the Bearer scheme. Example: "Authorization: Bearer {token}"',
)


async def current_principal(
    request: Request,
    _: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal:
    """Return the caller verified by :class:`BearerTokenBackend`."""

    user = request.scope.get("user")
    if isinstance(user, AuthenticatedUser):
        return user.principal
    raise HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=request.scope.get(AUTH_FAILURE_KEY, MISSING_TOKEN),
        headers={"WWW-Authenticate": "Bearer"},
    )


__all__ = [
    "AUTH_FAILURE_KEY",
    "AuthenticatedUser",
    "AuthorizationMiddleware",
    "AuthorizationPolicy",
    "BearerTokenBackend",
    "authorization_policy",
    "bearer_scheme",
    "current_principal",
    "require_authorization",
]
