"""Identity keys naming one logical object within one identity scope."""

from __future__ import annotations

from collections.abc import Hashable
from dataclasses import dataclass
from typing import Final

_NO_SCOPE_TEXT: Final[str] = "NONE"

__all__ = ["IdentityKey", "qualified_name"]


def qualified_name(value: object) -> str:
    """Return ``module.qualname`` for a type, or for the type of ``value``."""
    target = value if isinstance(value, type) else type(value)
    return f"{target.__module__}.{target.__qualname__}"


@dataclass(frozen=True, slots=True)
class IdentityKey:
    """Structural key over ``(scope_type, scope, raw_key)``.

    ``scope=None`` is its own value: a key without a scope never equals a key
    carrying one, even when the raw keys match.
    """

    scope_type: type
    scope: Hashable | None
    raw_key: Hashable

    def __post_init__(self) -> None:
        if not isinstance(self.scope_type, type):
            raise TypeError(
                f"IdentityKey.scope_type: expected type, got {type(self.scope_type).__name__}"
            )
        if self.raw_key is None:
            raise ValueError("IdentityKey.raw_key: must not be None")
        try:
            hash(self.raw_key)
            hash(self.scope)
        except TypeError as exc:
            raise TypeError(f"IdentityKey: raw_key and scope must be hashable ({exc})") from exc

    @property
    def has_scope(self) -> bool:
        return self.scope is not None

    def __str__(self) -> str:
        scope_text = _NO_SCOPE_TEXT if self.scope is None else _scope_text(self.scope)
        return (
            f"[ObjectId: key={self.raw_key}, type={qualified_name(self.scope_type)}, "
            f"scope={scope_text}]"
        )


def _scope_text(scope: object) -> str:
    if isinstance(scope, type):
        return qualified_name(scope)
    return str(scope)
