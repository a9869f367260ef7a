"""
refbind — unit tests for identity resolvers

File: tests/unit/identity/test_resolver.py

Purpose
- Validate binding, lookup, and conflict detection for decode sessions.

What this test file should cover
- Bind/resolve round trip and the not-found sentinel.
- Idempotent rebinding of the same reference; conflicts for distinct objects.
- Exact conflict diagnostics, including truncation of long values.
- Fresh state per session and atomic check-then-act under concurrency.
- Conflict decision events.

Functional requirements
- Offline, deterministic.
"""

from __future__ import annotations

import threading

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st
from structlog.testing import capture_logs

from refbind.identity.keys import IdentityKey
from refbind.identity.resolver import (
    NOT_FOUND,
    ObjectIdConflictError,
    SimpleIdentityResolver,
    describe_value,
)

KEY1 = IdentityKey(str, None, "key1")


def test_bind_then_rebind_same_then_conflict() -> None:
    resolver = SimpleIdentityResolver()

    resolver.bind_item(KEY1, "value1")
    assert resolver.resolve_id(KEY1) == "value1"

    resolver.bind_item(KEY1, resolver.resolve_id(KEY1))
    assert len(resolver) == 1

    with pytest.raises(ObjectIdConflictError) as excinfo:
        resolver.bind_item(KEY1, "value3")

    assert str(excinfo.value) == (
        "Object Id conflict: Id [ObjectId: key=key1, type=builtins.str, scope=NONE] "
        'already bound to an Object (type: `builtins.str`, value: "value1"): '
        'attempt to re-bind to a different Object (type: `builtins.str`, value: "value3")'
    )
    assert excinfo.value.key == KEY1
    assert excinfo.value.existing == "value1"
    assert excinfo.value.incoming == "value3"
    assert resolver.resolve_id(KEY1) == "value1"


def test_unbound_key_resolves_to_not_found_not_none() -> None:
    resolver = SimpleIdentityResolver()

    assert resolver.resolve_id(KEY1) is NOT_FOUND
    assert not NOT_FOUND

    resolver.bind_item(KEY1, None)
    assert resolver.resolve_id(KEY1) is None
    assert KEY1 in resolver


def test_value_equal_distinct_objects_conflict() -> None:
    resolver = SimpleIdentityResolver()
    first = [1, 2]
    second = [1, 2]

    resolver.bind_item(KEY1, first)
    with pytest.raises(ObjectIdConflictError):
        resolver.bind_item(KEY1, second)


def test_rebinding_a_none_binding_is_a_conflict() -> None:
    resolver = SimpleIdentityResolver()
    resolver.bind_item(KEY1, None)

    resolver.bind_item(KEY1, None)
    with pytest.raises(ObjectIdConflictError, match=r"\(null\)"):
        resolver.bind_item(KEY1, "late")


def test_keys_differing_in_scope_do_not_collide() -> None:
    resolver = SimpleIdentityResolver()
    scoped = IdentityKey(str, "orders", "key1")

    resolver.bind_item(KEY1, "unscoped")
    resolver.bind_item(scoped, "scoped")

    assert resolver.resolve_id(KEY1) == "unscoped"
    assert resolver.resolve_id(scoped) == "scoped"
    assert set(resolver.bound_keys()) == {KEY1, scoped}
    assert set(resolver) == {KEY1, scoped}


def test_new_for_deserialization_is_fresh_and_keeps_settings() -> None:
    resolver = SimpleIdentityResolver(description_max_length=10, thread_safe=False)
    resolver.bind_item(KEY1, "value1")

    fresh = resolver.new_for_deserialization(context={"request": 1})

    assert fresh is not resolver
    assert len(fresh) == 0
    assert fresh.resolve_id(KEY1) is NOT_FOUND
    assert fresh.description_max_length == 10
    assert fresh.thread_safe is False
    fresh.bind_item(KEY1, "value3")
    assert resolver.resolve_id(KEY1) == "value1"
    assert resolver.can_use_for(fresh)


def test_describe_value_truncates_long_text() -> None:
    long_text = "x" * 150

    described = describe_value(long_text, max_length=100)

    assert described == f'(type: `builtins.str`, value: "{"x" * 100}[... truncated]")'
    assert describe_value(42) == "(type: `builtins.int`, value: 42)"
    assert describe_value(None) == "(null)"


def test_conflict_message_respects_configured_length() -> None:
    resolver = SimpleIdentityResolver(description_max_length=5)
    resolver.bind_item(KEY1, "abcdefghij")

    with pytest.raises(ObjectIdConflictError) as excinfo:
        resolver.bind_item(KEY1, "klmnopqrst")

    message = str(excinfo.value)
    assert '"abcde[... truncated]"' in message
    assert '"klmno[... truncated]"' in message


def test_invalid_construction_is_rejected() -> None:
    with pytest.raises(ValueError):
        SimpleIdentityResolver(description_max_length=0)
    with pytest.raises(ValueError):
        SimpleIdentityResolver(description_max_length=True)
    with pytest.raises(TypeError, match="IdentityKey"):
        SimpleIdentityResolver().bind_item("key1", "value1")  # type: ignore[arg-type]


def test_conflict_emits_decision_event() -> None:
    resolver = SimpleIdentityResolver()
    resolver.bind_item(KEY1, "value1")

    with capture_logs() as logs, pytest.raises(ObjectIdConflictError):
        resolver.bind_item(KEY1, 3)

    assert logs == [
        {
            "event": "identity_conflict",
            "log_level": "warning",
            "key": str(KEY1),
            "existing_type": "builtins.str",
            "incoming_type": "builtins.int",
        }
    ]


def test_concurrent_binds_admit_exactly_one_winner() -> None:
    resolver = SimpleIdentityResolver(thread_safe=True)
    barrier = threading.Barrier(8)
    winners: list[object] = []
    conflicts: list[ObjectIdConflictError] = []
    guard = threading.Lock()

    def worker(index: int) -> None:
        candidate = f"candidate-{index}"
        barrier.wait()
        try:
            resolver.bind_item(KEY1, candidate)
        except ObjectIdConflictError as exc:
            with guard:
                conflicts.append(exc)
        else:
            with guard:
                winners.append(candidate)

    threads = [threading.Thread(target=worker, args=(idx,)) for idx in range(8)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1
    assert len(conflicts) == 7
    assert resolver.resolve_id(KEY1) == winners[0]


def test_from_config_reads_identity_section() -> None:
    resolver = SimpleIdentityResolver.from_config(
        {"identity": {"description_max_length": 20, "thread_safe": False}}
    )

    assert resolver.description_max_length == 20
    assert resolver.thread_safe is False
    assert SimpleIdentityResolver.from_config({}).description_max_length == 100


@settings(max_examples=25, derandomize=True, deadline=None)
@given(raw_keys=st.lists(st.text(min_size=1, max_size=8), min_size=1, max_size=20, unique=True))
def test_every_bound_key_resolves_to_its_object(raw_keys: list[str]) -> None:
    resolver = SimpleIdentityResolver()
    objects = {raw: object() for raw in raw_keys}

    for raw, obj in objects.items():
        resolver.bind_item(IdentityKey(str, None, raw), obj)

    assert len(resolver) == len(raw_keys)
    for raw, obj in objects.items():
        assert resolver.resolve_id(IdentityKey(str, None, raw)) is obj
