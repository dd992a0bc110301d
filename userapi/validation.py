"""Input rules applied by the user route handlers."""

from __future__ import annotations

from typing import Optional

MIN_NAME_WORDS = 3
NAME_RULE_MESSAGE = f"Name must contain at least {MIN_NAME_WORDS} words"


def validate_name(name: str) -> Optional[str]:
    """Return ``None`` when *name* is acceptable, otherwise the failure reason."""

    if len(name.split()) < MIN_NAME_WORDS:
        return NAME_RULE_MESSAGE
    return None


__all__ = ["MIN_NAME_WORDS", "NAME_RULE_MESSAGE", "validate_name"]
