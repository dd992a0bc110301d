"""In-memory storage for user records."""

from __future__ import annotations

from typing import Iterable, List, Optional

from .models import DEFAULT_STATUS, User


def _seed_users() -> List[User]:
    return [
        User(id=1, name="John Michael Doe", status="Active"),
        User(id=2, name="Jane Marie Smith", status="Inactive"),
    ]


class UserStore:
    """Ordered collection of users kept in process memory.

    Lookups are linear scans over the list. Mutations are not synchronised:
    concurrent create/delete requests may interleave.
    """

    def __init__(self, users: Iterable[User] | None = None) -> None:
        self._users: List[User] = list(users) if users is not None else _seed_users()

    def __len__(self) -> int:
        return len(self._users)

    def list(self) -> List[User]:
        return list(self._users)

    def get(self, user_id: int) -> Optional[User]:
        for user in self._users:
            if user.id == user_id:
                return user
        return None

    def next_id(self) -> int:
        if not self._users:
            return 1
        return max(user.id for user in self._users) + 1

    def add(self, name: str) -> User:
        """Append a new user; the status is always the default."""

        user = User(id=self.next_id(), name=name, status=DEFAULT_STATUS)
        self._users.append(user)
        return user

    def update(self, user_id: int, *, name: str, status: str) -> Optional[User]:
        user = self.get(user_id)
        if user is None:
            return None
        user.name = name
        user.status = status
        return user

    def remove(self, user_id: int) -> bool:
        user = self.get(user_id)
        if user is None:
            return False
        self._users.remove(user)
        return True


__all__ = ["UserStore"]
