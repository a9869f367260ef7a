"""Unit tests for ULID and session id helpers."""

from __future__ import annotations

import random

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from refbind.domain import ids


def _zero_bytes(size: int) -> bytes:
    return b"\x00" * size


def _ff_bytes(size: int) -> bytes:
    return b"\xff" * size


def test_generate_ulid_no_collision_10000() -> None:
    generated = {ids.generate_ulid() for _ in range(10_000)}
    assert len(generated) == 10_000


def test_ulid_charset_length_and_reject_invalid_chars() -> None:
    ulid_value = ids.generate_ulid(timestamp_ms=123_456, randbytes=_ff_bytes)
    assert len(ulid_value) == ids.ULID_LENGTH
    assert ulid_value == ulid_value.upper()
    assert all(char in ids.CROCKFORD_BASE32_ALPHABET for char in ulid_value)

    ids.validate_ulid(ulid_value.lower())

    with pytest.raises(ValueError, match="ulid length must be"):
        ids.validate_ulid("0" * 25)
    with pytest.raises(ValueError, match="exactly 10 bytes"):
        ids.generate_ulid(timestamp_ms=1, randbytes=lambda size: b"\x00" * (size - 1))
    with pytest.raises(ValueError, match="out of range"):
        ids.generate_ulid(timestamp_ms=-1)

    for invalid in ["I" + "0" * 25, "l" + "0" * 25, "O" + "0" * 25, "u" + "0" * 25]:
        with pytest.raises(ValueError, match="invalid ULID character"):
            ids.validate_ulid(invalid)


def test_ulid_overflow_and_timestamp_boundaries() -> None:
    ids.validate_ulid("7" + "Z" * 25)

    with pytest.raises(ValueError, match="overflow"):
        ids.validate_ulid("8" + "0" * 25)

    assert ids.parse_ulid_timestamp_ms("0" * 26) == 0

    top_timestamp_ulid = ids.generate_ulid(
        timestamp_ms=ids.ULID_MAX_TIMESTAMP_MS,
        randbytes=_zero_bytes,
    )
    assert ids.parse_ulid_timestamp_ms(top_timestamp_ulid) == ids.ULID_MAX_TIMESTAMP_MS


@settings(max_examples=25, derandomize=True, deadline=None)
@given(st.integers(min_value=0, max_value=ids.ULID_MAX_TIMESTAMP_MS))
def test_ulid_timestamp_is_recoverable(timestamp_ms: int) -> None:
    ulid_value = ids.generate_ulid(timestamp_ms=timestamp_ms, randbytes=_zero_bytes)
    assert ids.parse_ulid_timestamp_ms(ulid_value) == timestamp_ms


def test_session_id_helpers() -> None:
    session_id = ids.generate_session_id(timestamp_ms=1, randbytes=_ff_bytes)
    encode_session_id = ids.generate_encode_session_id(timestamp_ms=1, randbytes=_ff_bytes)

    assert session_id.startswith("ses-")
    assert encode_session_id.startswith("enc-")
    ids.validate_session_id(session_id)
    ids.validate_encode_session_id(encode_session_id)

    with pytest.raises(ValueError, match="expected prefix"):
        ids.validate_session_id(encode_session_id)
    with pytest.raises(ValueError, match="invalid ULID part"):
        ids.validate_session_id("ses-not-a-ulid")

    with pytest.raises(ValueError, match="expected prefix"):
        ids.validate_session_id("ses")
    with pytest.raises(ValueError, match="must be a string"):
        ids.validate_session_id(None)  # type: ignore[arg-type]


def test_public_surface_exposes_only_used_helpers() -> None:
    assert sorted(ids.__all__) == [
        "CROCKFORD_BASE32_ALPHABET",
        "ENCODE_SESSION_ID_PREFIX",
        "RandBytes",
        "SESSION_ID_PREFIX",
        "ULID_LENGTH",
        "ULID_MAX_TIMESTAMP_MS",
        "generate_encode_session_id",
        "generate_session_id",
        "generate_ulid",
        "parse_ulid_timestamp_ms",
        "validate_encode_session_id",
        "validate_session_id",
        "validate_ulid",
    ]
    assert all(hasattr(ids, name) for name in ids.__all__)
    assert not hasattr(ids, "short_id")


def test_random_seed_does_not_change_ulid_engine() -> None:
    random.seed(123)

    def _boom(_: int) -> int:
        raise AssertionError("global random.getrandbits must not be used")

    previous = random.getrandbits
    random.getrandbits = _boom
    try:
        ulid_value = ids.generate_ulid(timestamp_ms=42)
    finally:
        random.getrandbits = previous

    ids.validate_ulid(ulid_value)

    deterministic_1 = ids.generate_ulid(timestamp_ms=42, randbytes=_zero_bytes)
    deterministic_2 = ids.generate_ulid(timestamp_ms=42, randbytes=_zero_bytes)
    assert deterministic_1 == deterministic_2
