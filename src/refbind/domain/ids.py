"""ULIDs and the ``ses-``/``enc-`` session ids built on them.

Decode sessions carry ``ses-<ulid>`` ids, encode sessions ``enc-<ulid>``;
``UlidGenerator`` uses bare ULIDs as raw identity keys. ULIDs are 26
Crockford Base32 characters: a 48-bit millisecond timestamp followed by 80
random bits.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Callable
from typing import Final

CROCKFORD_BASE32_ALPHABET: Final[str] = "0123456789ABCDEFGHJKMNPQRSTVWXYZ"
ULID_LENGTH: Final[int] = 26
ULID_MAX_TIMESTAMP_MS: Final[int] = (1 << 48) - 1

SESSION_ID_PREFIX: Final[str] = "ses"
ENCODE_SESSION_ID_PREFIX: Final[str] = "enc"

_RANDOM_BYTES: Final[int] = 10
_RANDOM_BITS: Final[int] = _RANDOM_BYTES * 8
# Python's own base-32 digits, position for position with the Crockford alphabet.
_AS_INT_DIGITS: Final[dict[int, int]] = str.maketrans(
    CROCKFORD_BASE32_ALPHABET, "0123456789ABCDEFGHIJKLMNOPQRSTUV"
)

RandBytes = Callable[[int], bytes]

__all__ = [
    "CROCKFORD_BASE32_ALPHABET",
    "ENCODE_SESSION_ID_PREFIX",
    "SESSION_ID_PREFIX",
    "ULID_LENGTH",
    "ULID_MAX_TIMESTAMP_MS",
    "RandBytes",
    "generate_encode_session_id",
    "generate_session_id",
    "generate_ulid",
    "parse_ulid_timestamp_ms",
    "validate_encode_session_id",
    "validate_session_id",
    "validate_ulid",
]


def generate_ulid(*, timestamp_ms: int | None = None, randbytes: RandBytes | None = None) -> str:
    """Return a new uppercase ULID.

    ``timestamp_ms`` and ``randbytes`` are injectable for deterministic tests;
    by default the wall clock and :func:`secrets.token_bytes` are used.
    """
    stamp = time.time_ns() // 1_000_000 if timestamp_ms is None else timestamp_ms
    if isinstance(stamp, bool) or not isinstance(stamp, int):
        raise ValueError(f"timestamp_ms must be an int, got {type(stamp).__name__}")
    if not 0 <= stamp <= ULID_MAX_TIMESTAMP_MS:
        raise ValueError(
            f"timestamp_ms out of range: expected 0..{ULID_MAX_TIMESTAMP_MS}, got {stamp}"
        )
    raw = (randbytes or secrets.token_bytes)(_RANDOM_BYTES)
    if not isinstance(raw, (bytes, bytearray, memoryview)) or len(raw) != _RANDOM_BYTES:
        raise ValueError(f"randbytes must return exactly {_RANDOM_BYTES} bytes")

    number = (stamp << _RANDOM_BITS) | int.from_bytes(raw, "big")
    digits: list[str] = []
    for _ in range(ULID_LENGTH):
        number, digit = divmod(number, 32)
        digits.append(CROCKFORD_BASE32_ALPHABET[digit])
    return "".join(reversed(digits))


def validate_ulid(s: str) -> None:
    """Raise ``ValueError`` naming the first problem with ``s``."""
    _ulid_value(s)


def parse_ulid_timestamp_ms(s: str) -> int:
    return _ulid_value(s) >> _RANDOM_BITS


def generate_session_id(
    *, timestamp_ms: int | None = None, randbytes: RandBytes | None = None
) -> str:
    return f"{SESSION_ID_PREFIX}-{generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)}"


def validate_session_id(id_str: str) -> None:
    _validate_prefixed(id_str, SESSION_ID_PREFIX)


def generate_encode_session_id(
    *, timestamp_ms: int | None = None, randbytes: RandBytes | None = None
) -> str:
    ulid = generate_ulid(timestamp_ms=timestamp_ms, randbytes=randbytes)
    return f"{ENCODE_SESSION_ID_PREFIX}-{ulid}"


def validate_encode_session_id(id_str: str) -> None:
    _validate_prefixed(id_str, ENCODE_SESSION_ID_PREFIX)


def _validate_prefixed(id_str: str, prefix: str) -> None:
    if not isinstance(id_str, str):
        raise ValueError(f"session id must be a string, got {type(id_str).__name__}")
    head, separator, tail = id_str.partition("-")
    if head != prefix or not separator:
        raise ValueError(f"expected prefix '{prefix}-'")
    try:
        _ulid_value(tail)
    except ValueError as exc:
        raise ValueError(f"invalid ULID part for prefix '{prefix}': {exc}") from exc


def _ulid_value(text: str) -> int:
    if not isinstance(text, str):
        raise ValueError(f"ulid must be a string, got {type(text).__name__}")
    if len(text) != ULID_LENGTH:
        raise ValueError(f"ulid length must be {ULID_LENGTH}, got {len(text)}")
    upper = text.upper()
    for index, char in enumerate(upper):
        if char not in CROCKFORD_BASE32_ALPHABET:
            raise ValueError(f"invalid ULID character {text[index]!r} at index {index}")
    # 26 characters hold 130 bits; a leading digit above 7 overflows 128.
    if upper[0] > "7":
        raise ValueError("ulid overflow: value exceeds maximum 128-bit ULID")
    return int(upper.translate(_AS_INT_DIGITS), 32)
