"""Domain models for the user management service."""

from __future__ import annotations

from dataclasses import dataclass

DEFAULT_STATUS = "Inactive"


@dataclass
class User:
    """A user record held by the in-memory store."""

    id: int
    name: str
    status: str = DEFAULT_STATUS


__all__ = ["DEFAULT_STATUS", "User"]
