"""Serialize-as / deserialize-as target type overrides for one property.

Pure data: the host engine reads these when choosing the concrete type for a
property value, its collection content, or its mapping keys.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Final, cast

from refbind.identity.keys import qualified_name

__all__ = ["TypeOverride"]

_FIELDS: Final[tuple[str, ...]] = ("value", "content", "keys")


@dataclass(frozen=True, slots=True, init=False, eq=False, repr=False)
class TypeOverride:
    value: type | None = None
    content: type | None = None
    keys: type | None = None

    def __new__(
        cls,
        value: type | None = None,
        content: type | None = None,
        keys: type | None = None,
    ) -> TypeOverride:
        if cls is TypeOverride and all(_unset(item) for item in (value, content, keys)):
            return _EMPTY
        return object.__new__(cls)

    def __init__(
        self,
        value: type | None = None,
        content: type | None = None,
        keys: type | None = None,
    ) -> None:
        if self is not _EMPTY:
            _assign(self, value, content, keys)

    def __reduce__(self) -> tuple[type[TypeOverride], tuple[object, ...]]:
        return (type(self), (self.value, self.content, self.keys))

    @classmethod
    def empty(cls) -> TypeOverride:
        return _EMPTY

    @classmethod
    def construct(
        cls,
        value: type | None = None,
        content: type | None = None,
        keys: type | None = None,
    ) -> TypeOverride:
        return cls(value, content, keys)

    @classmethod
    def from_dict(cls, data: Mapping[str, object] | None) -> TypeOverride:
        if data is None:
            return _EMPTY
        unknown = sorted(str(key) for key in data if key not in _FIELDS)
        if unknown:
            raise ValueError(f"TypeOverride: unexpected fields {unknown}; allowed {list(_FIELDS)}")
        return cls.construct(
            data.get("value"),  # type: ignore[arg-type]
            data.get("content"),  # type: ignore[arg-type]
            data.get("keys"),  # type: ignore[arg-type]
        )

    def with_value(self, value: type | None) -> TypeOverride:
        if (None if _unset(value) else value) is self.value:
            return self
        return TypeOverride.construct(value, self.content, self.keys)

    def with_content(self, content: type | None) -> TypeOverride:
        if (None if _unset(content) else content) is self.content:
            return self
        return TypeOverride.construct(self.value, content, self.keys)

    def with_keys(self, keys: type | None) -> TypeOverride:
        if (None if _unset(keys) else keys) is self.keys:
            return self
        return TypeOverride.construct(self.value, self.content, keys)

    @property
    def is_empty(self) -> bool:
        return self.value is None and self.content is None and self.keys is None

    def __str__(self) -> str:
        rendered = ",".join(
            f"{name}={_type_text(getattr(self, name))}" for name in _FIELDS
        )
        return f"TypeOverride({rendered})"

    __repr__ = __str__

    def __hash__(self) -> int:
        h = 1
        for name in _FIELDS:
            candidate = getattr(self, name)
            if candidate is not None:
                h += hash(candidate)
        return h

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if other is None or type(other) is not type(self):
            return False
        typed = cast("TypeOverride", other)
        return (
            self.value is typed.value
            and self.content is typed.content
            and self.keys is typed.keys
        )


def _unset(candidate: object) -> bool:
    # ``NoneType`` is the "use the declared type" marker in declarations.
    return candidate is None or candidate is type(None)


def _assign(
    target: TypeOverride,
    value: type | None,
    content: type | None,
    keys: type | None,
) -> None:
    for name, candidate in zip(_FIELDS, (value, content, keys), strict=True):
        if _unset(candidate):
            candidate = None
        elif not isinstance(candidate, type):
            raise ValueError(
                f"TypeOverride.{name}: expected type, got {type(candidate).__name__}"
            )
        object.__setattr__(target, name, candidate)


def _type_text(value: type | None) -> str:
    return "null" if value is None else qualified_name(value)


_EMPTY: Final[TypeOverride] = object.__new__(TypeOverride)
_assign(_EMPTY, None, None, None)
