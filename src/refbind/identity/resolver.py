"""Identity resolvers: per-decode-session stores binding keys to objects."""

from __future__ import annotations

import threading
from abc import ABC, abstractmethod
from collections.abc import Iterator, Mapping
from contextlib import AbstractContextManager, nullcontext
from enum import Enum
from typing import Final, Literal

import structlog

from refbind.identity.keys import IdentityKey, qualified_name

DEFAULT_DESCRIPTION_MAX_LENGTH: Final[int] = 100
_TRUNCATION_MARKER: Final[str] = "[... truncated]"

_LOGGER = structlog.get_logger(__name__)

__all__ = [
    "DEFAULT_DESCRIPTION_MAX_LENGTH",
    "NOT_FOUND",
    "IdentityResolver",
    "NotFound",
    "ObjectIdConflictError",
    "SimpleIdentityResolver",
    "describe_value",
]


class NotFound(Enum):
    """Sentinel type for lookups of keys that were never bound."""

    NOT_FOUND = "NOT_FOUND"

    def __bool__(self) -> Literal[False]:
        return False

    def __repr__(self) -> str:
        return "NOT_FOUND"


NOT_FOUND: Final = NotFound.NOT_FOUND


class ObjectIdConflictError(RuntimeError):
    """Raised when a bound key is re-bound to a different object."""

    def __init__(
        self,
        key: IdentityKey,
        existing: object,
        incoming: object,
        *,
        max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH,
    ) -> None:
        self.key = key
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Object Id conflict: Id {key} already bound to an Object "
            f"{describe_value(existing, max_length=max_length)}: attempt to re-bind to a "
            f"different Object {describe_value(incoming, max_length=max_length)}"
        )


def describe_value(value: object, *, max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH) -> str:
    """Render ``value`` with its type for diagnostics, bounding the text length."""
    if value is None:
        return "(null)"
    text = str(value)
    if len(text) > max_length:
        text = text[:max_length] + _TRUNCATION_MARKER
    if isinstance(value, str):
        text = f'"{text}"'
    return f"(type: `{qualified_name(value)}`, value: {text})"


class IdentityResolver(ABC):
    """Binding store consulted while decoding back-references."""

    @abstractmethod
    def bind_item(self, key: IdentityKey, obj: object) -> None:
        """Bind ``key`` to ``obj``; raise :class:`ObjectIdConflictError` on mismatch."""

    @abstractmethod
    def resolve_id(self, key: IdentityKey) -> object:
        """Return the bound object, or :data:`NOT_FOUND` when ``key`` was never bound."""

    @abstractmethod
    def new_for_deserialization(self, context: object | None = None) -> IdentityResolver:
        """Return a fresh, empty resolver for one decode session."""

    def can_use_for(self, other: IdentityResolver) -> bool:
        return type(other) is type(self)


class SimpleIdentityResolver(IdentityResolver):
    """Dictionary-backed resolver with strict reference-identity rebinding.

    The check-then-act in :meth:`bind_item` runs under a lock so sub-graphs
    decoded in parallel against one resolver cannot both bind a key.
    """

    def __init__(
        self,
        *,
        description_max_length: int = DEFAULT_DESCRIPTION_MAX_LENGTH,
        thread_safe: bool = True,
    ) -> None:
        if isinstance(description_max_length, bool) or not isinstance(
            description_max_length, int
        ):
            raise ValueError("description_max_length must be an int")
        if description_max_length <= 0:
            raise ValueError("description_max_length must be > 0")
        self._description_max_length = description_max_length
        self._thread_safe = bool(thread_safe)
        self._lock: AbstractContextManager[object] = (
            threading.Lock() if self._thread_safe else nullcontext()
        )
        self._items: dict[IdentityKey, object] | None = None

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> SimpleIdentityResolver:
        """Build a resolver from the ``[identity]`` section of an effective config."""
        identity = config.get("identity")
        section: Mapping[str, object] = identity if isinstance(identity, Mapping) else {}
        max_length = section.get("description_max_length", DEFAULT_DESCRIPTION_MAX_LENGTH)
        thread_safe = section.get("thread_safe", True)
        if not isinstance(max_length, int):
            raise ValueError("identity.description_max_length must be an int")
        return cls(description_max_length=max_length, thread_safe=bool(thread_safe))

    @property
    def description_max_length(self) -> int:
        return self._description_max_length

    @property
    def thread_safe(self) -> bool:
        return self._thread_safe

    def bind_item(self, key: IdentityKey, obj: object) -> None:
        if not isinstance(key, IdentityKey):
            raise TypeError(f"key must be IdentityKey, got {type(key).__name__}")
        with self._lock:
            if self._items is None:
                self._items = {}
            elif key in self._items:
                existing = self._items[key]
                # Rebinding the same object is a no-op.
                if existing is obj:
                    return
                error = ObjectIdConflictError(
                    key, existing, obj, max_length=self._description_max_length
                )
                _LOGGER.warning(
                    "identity_conflict",
                    key=str(key),
                    existing_type=qualified_name(existing),
                    incoming_type=qualified_name(obj),
                )
                raise error
            self._items[key] = obj

    def resolve_id(self, key: IdentityKey) -> object:
        with self._lock:
            if self._items is None:
                return NOT_FOUND
            return self._items.get(key, NOT_FOUND)

    def is_bound(self, key: IdentityKey) -> bool:
        with self._lock:
            return self._items is not None and key in self._items

    def bound_keys(self) -> tuple[IdentityKey, ...]:
        with self._lock:
            return () if self._items is None else tuple(self._items)

    def new_for_deserialization(self, context: object | None = None) -> SimpleIdentityResolver:
        # Bindings never carry across sessions.
        return type(self)(
            description_max_length=self._description_max_length,
            thread_safe=self._thread_safe,
        )

    def __len__(self) -> int:
        with self._lock:
            return 0 if self._items is None else len(self._items)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, IdentityKey) and self.is_bound(key)

    def __iter__(self) -> Iterator[IdentityKey]:
        return iter(self.bound_keys())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(bound={len(self)}, thread_safe={self._thread_safe})"
