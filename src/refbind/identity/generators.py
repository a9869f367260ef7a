"""Identity generation strategies used while encoding an object graph.

Prototype generators are attached to declared properties and shared across
concurrent encodes, so they hold no per-object state. Strategies that need a
counter or a memo create it on the instance returned by
``new_for_serialization``; that instance belongs to exactly one encode session.
"""

from __future__ import annotations

import itertools
import uuid
from abc import ABC, abstractmethod
from collections.abc import Callable, Hashable, Iterator, Mapping
from typing import Final

from refbind.domain import ids
from refbind.identity.keys import IdentityKey

DEFAULT_SEQUENCE_START: Final[int] = 1

__all__ = [
    "DEFAULT_SEQUENCE_START",
    "GeneratorStateError",
    "IdentityGenerator",
    "NoIdentityGenerator",
    "PropertyGenerator",
    "ReferenceGenerator",
    "SequenceGenerator",
    "UlidGenerator",
    "UuidGenerator",
]


class GeneratorStateError(RuntimeError):
    """Raised when a stateful generator prototype is used without a session."""


class IdentityGenerator(ABC):
    """Strategy producing :class:`IdentityKey` values for encoded objects."""

    def __init__(self, scope: Hashable | None = None) -> None:
        self._scope = scope

    @property
    def scope(self) -> Hashable | None:
        return self._scope

    @abstractmethod
    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        """Return this strategy bound to ``scope`` (``self`` when unchanged)."""

    def new_for_serialization(self, context: object | None = None) -> IdentityGenerator:
        """Return the instance to use for one encode session."""
        return self

    @abstractmethod
    def generate_id(self, value: object) -> IdentityKey | None:
        """Return the key for ``value``, or ``None`` when it carries no identity."""

    def key(self, raw_key: Hashable | None) -> IdentityKey | None:
        """Build a key from raw reference data read back during decoding."""
        if raw_key is None:
            return None
        return IdentityKey(type(self), self._scope, raw_key)

    def can_use_for(self, other: IdentityGenerator) -> bool:
        return type(other) is type(self) and other.scope == self._scope

    def __repr__(self) -> str:
        return f"{type(self).__name__}(scope={self._scope!r})"


class NoIdentityGenerator(IdentityGenerator):
    """Marker strategy: values never participate in identity tracking."""

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        return self

    def generate_id(self, value: object) -> IdentityKey | None:
        return None

    def key(self, raw_key: Hashable | None) -> IdentityKey | None:
        return None


class PropertyGenerator(IdentityGenerator):
    """Read the raw key from a designated attribute or mapping entry."""

    def __init__(self, property_name: str, scope: Hashable | None = None) -> None:
        if not isinstance(property_name, str) or not property_name.strip():
            raise ValueError("PropertyGenerator.property_name: must be a non-empty string")
        super().__init__(scope)
        self._property_name = property_name

    @property
    def property_name(self) -> str:
        return self._property_name

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        if scope == self._scope:
            return self
        return PropertyGenerator(self._property_name, scope)

    def generate_id(self, value: object) -> IdentityKey | None:
        if value is None:
            return None
        if isinstance(value, Mapping):
            raw = value.get(self._property_name)
        else:
            raw = getattr(value, self._property_name, None)
        return self.key(raw)

    def can_use_for(self, other: IdentityGenerator) -> bool:
        return (
            super().can_use_for(other)
            and isinstance(other, PropertyGenerator)
            and other.property_name == self._property_name
        )

    def __repr__(self) -> str:
        return f"PropertyGenerator(property_name={self._property_name!r}, scope={self._scope!r})"


class SequenceGenerator(IdentityGenerator):
    """Number objects in encounter order, starting again for every session."""

    def __init__(
        self,
        scope: Hashable | None = None,
        *,
        start: int = DEFAULT_SEQUENCE_START,
        _counter: Iterator[int] | None = None,
    ) -> None:
        if isinstance(start, bool) or not isinstance(start, int):
            raise ValueError(f"SequenceGenerator.start: expected int, got {type(start).__name__}")
        super().__init__(scope)
        self._start = start
        self._counter = _counter

    @classmethod
    def from_config(
        cls, config: Mapping[str, object], scope: Hashable | None = None
    ) -> SequenceGenerator:
        identity = config.get("identity")
        start: object = DEFAULT_SEQUENCE_START
        if isinstance(identity, Mapping):
            start = identity.get("sequence_start", DEFAULT_SEQUENCE_START)
        if isinstance(start, bool) or not isinstance(start, int):
            raise ValueError("identity.sequence_start must be an int")
        return cls(scope, start=start)

    @property
    def start(self) -> int:
        return self._start

    @property
    def is_session_bound(self) -> bool:
        return self._counter is not None

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        if scope == self._scope:
            return self
        return SequenceGenerator(scope, start=self._start)

    def new_for_serialization(self, context: object | None = None) -> IdentityGenerator:
        return SequenceGenerator(
            self._scope,
            start=self._start,
            _counter=itertools.count(self._start),
        )

    def generate_id(self, value: object) -> IdentityKey | None:
        if self._counter is None:
            raise GeneratorStateError(
                "SequenceGenerator prototype has no counter; call new_for_serialization() first"
            )
        if value is None:
            return None
        return self.key(next(self._counter))


class ReferenceGenerator(IdentityGenerator):
    """Key objects by their reference identity within one encode session.

    The session memo keeps every keyed object alive so ``id()`` values cannot
    be recycled by the interpreter while the session is running.
    """

    def __init__(
        self,
        scope: Hashable | None = None,
        *,
        _memo: dict[int, tuple[object, IdentityKey]] | None = None,
    ) -> None:
        super().__init__(scope)
        self._memo = _memo

    @property
    def is_session_bound(self) -> bool:
        return self._memo is not None

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        if scope == self._scope:
            return self
        return ReferenceGenerator(scope)

    def new_for_serialization(self, context: object | None = None) -> IdentityGenerator:
        return ReferenceGenerator(self._scope, _memo={})

    def generate_id(self, value: object) -> IdentityKey | None:
        if self._memo is None:
            raise GeneratorStateError(
                "ReferenceGenerator prototype has no memo; call new_for_serialization() first"
            )
        if value is None:
            return None
        entry = self._memo.get(id(value))
        if entry is not None:
            return entry[1]
        generated = IdentityKey(type(self), self._scope, f"{type(value).__name__}@{id(value):x}")
        self._memo[id(value)] = (value, generated)
        return generated


class UuidGenerator(IdentityGenerator):
    """Random UUID4 text per call; stateless and safe to share."""

    def __init__(
        self,
        scope: Hashable | None = None,
        *,
        factory: Callable[[], uuid.UUID] = uuid.uuid4,
    ) -> None:
        super().__init__(scope)
        self._factory = factory

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        if scope == self._scope:
            return self
        return UuidGenerator(scope, factory=self._factory)

    def generate_id(self, value: object) -> IdentityKey | None:
        if value is None:
            return None
        return self.key(str(self._factory()))


class UlidGenerator(IdentityGenerator):
    """Time-ordered ULID text per call; stateless and safe to share."""

    def __init__(
        self,
        scope: Hashable | None = None,
        *,
        clock_ms: Callable[[], int] | None = None,
        randbytes: ids.RandBytes | None = None,
    ) -> None:
        super().__init__(scope)
        self._clock_ms = clock_ms
        self._randbytes = randbytes

    def for_scope(self, scope: Hashable | None) -> IdentityGenerator:
        if scope == self._scope:
            return self
        return UlidGenerator(scope, clock_ms=self._clock_ms, randbytes=self._randbytes)

    def generate_id(self, value: object) -> IdentityKey | None:
        if value is None:
            return None
        timestamp_ms = None if self._clock_ms is None else self._clock_ms()
        return self.key(ids.generate_ulid(timestamp_ms=timestamp_ms, randbytes=self._randbytes))
