"""Issue and verify signed bearer tokens for the user management API."""

from __future__ import annotations

import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import jwt

from .config import Settings

ALGORITHM = "HS256"


class TokenError(Exception):
    """Raised when a presented token fails verification."""


@dataclass(frozen=True)
class IssuedToken:
    token: str
    expires_at: datetime


@dataclass(frozen=True)
class Principal:
    """Verified identity carried by a bearer token."""

    username: str
    role: str
    expires_at: datetime


class TokenService:
    """Mint and check HS256 tokens bound to one issuer and audience."""

    def __init__(
        self,
        *,
        secret: str,
        issuer: str,
        audience: str,
        lifetime: timedelta = timedelta(hours=1),
        username: str,
        password: str,
        role: str,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._secret = secret
        self._issuer = issuer
        self._audience = audience
        self._lifetime = lifetime
        self._username = username
        self._password = password
        self._role = role
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenService":
        return cls(
            secret=settings.jwt_secret,
            issuer=settings.jwt_issuer,
            audience=settings.jwt_audience,
            lifetime=timedelta(minutes=settings.token_lifetime_minutes),
            username=settings.admin_username,
            password=settings.admin_password,
            role=settings.admin_role,
        )

    @property
    def lifetime(self) -> timedelta:
        return self._lifetime

    def authenticate(self, username: str, password: str) -> bool:
        """Return ``True`` only for the configured credential pair."""

        username_ok = secrets.compare_digest(username.encode("utf-8"), self._username.encode("utf-8"))
        password_ok = secrets.compare_digest(password.encode("utf-8"), self._password.encode("utf-8"))
        return username_ok and password_ok

    def issue(self, username: str) -> IssuedToken:
        # JWT timestamps are whole seconds; report the same instant the token carries.
        issued_at = self._clock().replace(microsecond=0)
        expires_at = issued_at + self._lifetime
        payload = {
            "sub": username,
            "name": username,
            "role": self._role,
            "iss": self._issuer,
            "aud": self._audience,
            "iat": issued_at,
            "nbf": issued_at,
            "exp": expires_at,
        }
        token = jwt.encode(payload, self._secret, algorithm=ALGORITHM)
        return IssuedToken(token=token, expires_at=expires_at)

    def verify(self, token: str) -> Principal:
        """Check signature, issuer, audience and lifetime of *token*."""

        try:
            claims = jwt.decode(
                token,
                self._secret,
                algorithms=[ALGORITHM],
                audience=self._audience,
                issuer=self._issuer,
                options={"require": ["exp", "iss", "aud", "sub"]},
            )
        except jwt.ExpiredSignatureError as exc:
            raise TokenError("The token has expired") from exc
        except jwt.InvalidAudienceError as exc:
            raise TokenError("The token audience is invalid") from exc
        except jwt.InvalidIssuerError as exc:
            raise TokenError("The token issuer is invalid") from exc
        except jwt.InvalidSignatureError as exc:
            raise TokenError("The token signature is invalid") from exc
        except jwt.InvalidTokenError as exc:
            raise TokenError(f"The token is invalid: {exc}") from exc

        return Principal(
            username=str(claims["sub"]),
            role=str(claims.get("role", "")),
            expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc),
        )


__all__ = ["ALGORITHM", "IssuedToken", "Principal", "TokenError", "TokenService"]
