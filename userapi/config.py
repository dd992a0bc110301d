"""Configuration management for the user management service."""
from __future__ import annotations

import os
from dataclasses import dataclass, fields, replace
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

# Development-only signing key. Deployments must set USERAPI_JWT_SECRET.
DEVELOPMENT_JWT_SECRET = "userapi-development-signing-key-change-me-0001"

_ENV_PREFIX = "USERAPI_"
_MIN_SECRET_BYTES = 32


def _parse_bool(value: object) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"1", "true", "yes", "on"}:
        return True
    if lowered in {"0", "false", "no", "off", ""}:
        return False
    raise ValueError(f"Invalid boolean value: {value!r}")


def _parse_proxies(value: object) -> List[str]:
    if isinstance(value, (list, tuple)):
        items = [str(item).strip() for item in value]
    else:
        items = [item.strip() for item in str(value).split(",")]
    return [item for item in items if item] or ["*"]


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the API and its token service."""

    jwt_secret: str = DEVELOPMENT_JWT_SECRET
    jwt_issuer: str = "UserManagementAPI"
    jwt_audience: str = "UserManagementAPIClients"
    token_lifetime_minutes: int = 60
    admin_username: str = "admin"
    admin_password: str = "password123"
    admin_role: str = "Admin"
    https_redirect: bool = False
    trusted_proxies: Tuple[str, ...] = ("127.0.0.1",)

    def __post_init__(self) -> None:
        if len(self.jwt_secret.encode("utf-8")) < _MIN_SECRET_BYTES:
            raise ValueError(f"jwt_secret must be at least {_MIN_SECRET_BYTES} bytes long")
        if self.token_lifetime_minutes <= 0:
            raise ValueError("token_lifetime_minutes must be positive")
        if not self.admin_username or not self.admin_password:
            raise ValueError("admin_username and admin_password must not be empty")

    @property
    def uses_development_secret(self) -> bool:
        return self.jwt_secret == DEVELOPMENT_JWT_SECRET

    @staticmethod
    def from_dict(data: Mapping[str, object], base: Optional["Settings"] = None) -> "Settings":
        """Overlay raw key/value data on *base* (or the defaults)."""
        known = {field.name for field in fields(Settings)}
        unknown = set(data) - known
        if unknown:
            raise ValueError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

        values: Dict[str, object] = {}
        for key, raw in data.items():
            if raw is None:
                continue
            if key == "token_lifetime_minutes":
                values[key] = int(raw)  # type: ignore[arg-type]
            elif key == "https_redirect":
                values[key] = _parse_bool(raw)
            elif key == "trusted_proxies":
                values[key] = tuple(_parse_proxies(raw))
            else:
                values[key] = str(raw)
        return replace(base or Settings(), **values)


def resolve_config_path(env_value: Optional[str]) -> Path:
    """Resolve the path to the optional YAML configuration file."""
    if env_value:
        return Path(env_value).expanduser().resolve(strict=False)
    return (Path(__file__).resolve().parent.parent / "config" / "settings.yaml").resolve(strict=False)


def load_yaml_settings(config_path: Path) -> Dict[str, object]:
    with config_path.open("r", encoding="utf-8") as handle:
        raw = yaml.safe_load(handle) or {}
    if not isinstance(raw, dict):
        raise ValueError(f"Configuration file {config_path} must contain a mapping")
    return raw


def _env_overrides(environ: Mapping[str, str]) -> Dict[str, object]:
    overrides: Dict[str, object] = {}
    for field in fields(Settings):
        value = environ.get(_ENV_PREFIX + field.name.upper())
        if value is not None:
            overrides[field.name] = value
    return overrides


def load_settings(
    config_path: Optional[str] = None,
    *,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build settings from defaults, an optional YAML file and ``USERAPI_*`` variables."""
    env = os.environ if environ is None else environ
    explicit = config_path or env.get(_ENV_PREFIX + "CONFIG")
    path = resolve_config_path(explicit)

    settings = Settings()
    if path.exists():
        settings = Settings.from_dict(load_yaml_settings(path), settings)
    elif explicit:
        raise FileNotFoundError(f"Configuration file not found: {path}")

    return Settings.from_dict(_env_overrides(env), settings)


__all__ = [
    "DEVELOPMENT_JWT_SECRET",
    "Settings",
    "load_settings",
    "load_yaml_settings",
    "resolve_config_path",
]
