"""Session-level helpers the host engine drives while walking a graph.

``ReferenceTracker`` decides, during encoding, whether an object is written
by value (first sighting) or as a back-reference. ``BindingSession`` wraps a
fresh resolver for one decode and queues callbacks for forward references
until their referent is bound.
"""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import structlog

from refbind.domain import ids
from refbind.identity.resolver import NOT_FOUND, IdentityResolver
from refbind.observability.logging import correlation_scope

if TYPE_CHECKING:
    from refbind.identity.generators import IdentityGenerator
    from refbind.identity.keys import IdentityKey

ReferenceCallback = Callable[[object], None]

_LOGGER = structlog.get_logger(__name__)

__all__ = [
    "BindingSession",
    "ReferenceCallback",
    "ReferenceTracker",
    "TrackedReference",
    "UnresolvedForwardReferenceError",
]


class UnresolvedForwardReferenceError(RuntimeError):
    """Raised when a decode session ends with references that were never bound."""

    def __init__(self, keys: tuple[IdentityKey, ...]) -> None:
        self.keys = keys
        rendered = ", ".join(str(key) for key in keys)
        super().__init__(f"unresolved forward references ({len(keys)}): {rendered}")


@dataclass(frozen=True, slots=True)
class TrackedReference:
    key: IdentityKey
    first_seen: bool

    @property
    def is_back_reference(self) -> bool:
        return not self.first_seen


class ReferenceTracker:
    """Per-encode-session record of objects already written."""

    def __init__(self, generator: IdentityGenerator, context: object | None = None) -> None:
        self._generator = generator.new_for_serialization(context)
        self._seen: dict[int, tuple[object, IdentityKey]] = {}
        self.session_id = ids.generate_encode_session_id()

    @property
    def generator(self) -> IdentityGenerator:
        return self._generator

    def track(self, value: object) -> TrackedReference | None:
        """Return the key for ``value`` and whether this is its first sighting."""
        if value is None:
            return None
        entry = self._seen.get(id(value))
        if entry is not None:
            return TrackedReference(key=entry[1], first_seen=False)
        key = self._generator.generate_id(value)
        if key is None:
            return None
        # Holding the object keeps its id() reserved for the whole session.
        self._seen[id(value)] = (value, key)
        return TrackedReference(key=key, first_seen=True)

    def __len__(self) -> int:
        return len(self._seen)


class BindingSession:
    """One decode session: a fresh resolver plus pending forward references."""

    def __init__(
        self,
        resolver: IdentityResolver,
        context: object | None = None,
        *,
        session_id: str | None = None,
    ) -> None:
        self.session_id = ids.generate_session_id() if session_id is None else session_id
        ids.validate_session_id(self.session_id)
        self._resolver = resolver.new_for_deserialization(context)
        self._pending: dict[IdentityKey, list[ReferenceCallback]] = {}
        self._pending_lock = threading.Lock()
        with correlation_scope(session_id=self.session_id):
            _LOGGER.debug(
                "binding_session_started",
                session_id=self.session_id,
                resolver=type(self._resolver).__name__,
            )

    @property
    def resolver(self) -> IdentityResolver:
        return self._resolver

    def bind(self, key: IdentityKey, obj: object) -> None:
        """Bind ``key`` and fire every callback waiting on it.

        All callbacks run even when one raises; the first failure is re-raised
        once they have all been attempted.
        """
        self._resolver.bind_item(key, obj)
        with self._pending_lock:
            waiting = self._pending.pop(key, [])
        first_error: Exception | None = None
        for callback in waiting:
            try:
                callback(obj)
            except Exception as exc:
                if first_error is None:
                    first_error = exc
                _LOGGER.warning(
                    "forward_reference_callback_failed",
                    session_id=self.session_id,
                    key=str(key),
                    error=repr(exc),
                )
        if first_error is not None:
            raise first_error

    def resolve(self, key: IdentityKey) -> object:
        return self._resolver.resolve_id(key)

    def defer(self, key: IdentityKey, callback: ReferenceCallback) -> bool:
        """Run ``callback`` with the referent now, or once ``key`` gets bound.

        Returns ``True`` when the callback ran immediately.
        """
        with self._pending_lock:
            resolved = self._resolver.resolve_id(key)
            if resolved is NOT_FOUND:
                self._pending.setdefault(key, []).append(callback)
                return False
        callback(resolved)
        return True

    def unresolved_keys(self) -> tuple[IdentityKey, ...]:
        with self._pending_lock:
            return tuple(self._pending)

    def check_resolved(self) -> None:
        """Raise when forward references are still waiting for a referent."""
        pending = self.unresolved_keys()
        if not pending:
            return
        with correlation_scope(session_id=self.session_id):
            _LOGGER.warning(
                "binding_session_unresolved",
                session_id=self.session_id,
                unresolved=[str(key) for key in pending],
            )
        raise UnresolvedForwardReferenceError(pending)
