"""Three-valued flag used by override values: explicitly true, false, or unset."""

from __future__ import annotations

from enum import StrEnum
from typing import Final

__all__ = ["OptBoolean", "OptBooleanLike"]

_TEXT_TRUE: Final[frozenset[str]] = frozenset({"true", "t", "yes", "y", "on", "1"})
_TEXT_FALSE: Final[frozenset[str]] = frozenset({"false", "f", "no", "n", "off", "0"})
_TEXT_DEFAULT: Final[frozenset[str]] = frozenset({"default", "unset", "null", "none", ""})


class OptBoolean(StrEnum):
    TRUE = "true"
    FALSE = "false"
    DEFAULT = "default"

    @classmethod
    def of(cls, value: OptBooleanLike) -> OptBoolean:
        """Coerce ``bool``, ``None``, text, or an existing member into a member."""
        if isinstance(value, OptBoolean):
            return value
        if value is None:
            return cls.DEFAULT
        if isinstance(value, bool):
            return cls.TRUE if value else cls.FALSE
        if isinstance(value, str):
            lowered = value.strip().lower()
            if lowered in _TEXT_TRUE:
                return cls.TRUE
            if lowered in _TEXT_FALSE:
                return cls.FALSE
            if lowered in _TEXT_DEFAULT:
                return cls.DEFAULT
            raise ValueError(f"cannot interpret {value!r} as OptBoolean")
        raise TypeError(f"cannot interpret {type(value).__name__} as OptBoolean")

    @property
    def is_set(self) -> bool:
        return self is not OptBoolean.DEFAULT

    def as_bool(self) -> bool | None:
        if self is OptBoolean.TRUE:
            return True
        if self is OptBoolean.FALSE:
            return False
        return None

    def as_primitive(self, default: bool) -> bool:
        """Resolve against ``default`` when unset."""
        resolved = self.as_bool()
        return default if resolved is None else resolved

    def equals(self, other: bool | None) -> bool:
        return self.as_bool() is other

    def render(self) -> str:
        """Text form used in value renderings: ``true``, ``false`` or ``null``."""
        resolved = self.as_bool()
        if resolved is None:
            return "null"
        return "true" if resolved else "false"


OptBooleanLike = OptBoolean | bool | str | None
