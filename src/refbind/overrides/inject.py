"""Per-property injection overrides.

``InjectOverride`` carries three optional settings for one property: the
identifier of the value to inject, whether a value present in the input wins
over the injected one, and whether a missing injectable value is tolerated.
The constructor, every factory and every ``with_*`` mutator return the
shared empty instance when the result has nothing set. Mutators return
``self`` when nothing changes, so callers may detect changes with ``is``.
"""

from __future__ import annotations

from collections.abc import Hashable, Mapping
from dataclasses import dataclass
from typing import Final, cast

from refbind.overrides.tristate import OptBoolean, OptBooleanLike

__all__ = ["InjectDefaults", "InjectOverride", "InjectSpec"]

_SPEC_KEYS: Final[frozenset[str]] = frozenset({"id", "use_input", "tolerate_missing"})


@dataclass(frozen=True, slots=True)
class InjectSpec:
    """Explicit declaration attached to a property at registration time.

    Defaults mirror an undecorated declaration: empty identifier, both flags
    unset.
    """

    id: str = ""
    use_input: OptBoolean = OptBoolean.DEFAULT
    tolerate_missing: OptBoolean = OptBoolean.DEFAULT

    def __post_init__(self) -> None:
        if not isinstance(self.id, str):
            raise ValueError(f"InjectSpec.id: expected str, got {type(self.id).__name__}")
        object.__setattr__(self, "use_input", OptBoolean.of(self.use_input))
        object.__setattr__(self, "tolerate_missing", OptBoolean.of(self.tolerate_missing))


@dataclass(frozen=True, slots=True, init=False, eq=False, repr=False)
class InjectOverride:
    id: Hashable | None = None
    use_input: OptBoolean = OptBoolean.DEFAULT
    tolerate_missing: OptBoolean = OptBoolean.DEFAULT

    def __new__(
        cls,
        id: Hashable | None = None,  # noqa: A002
        use_input: OptBooleanLike = None,
        tolerate_missing: OptBooleanLike = None,
    ) -> InjectOverride:
        # An all-unset value is always the shared empty instance.
        if (
            cls is InjectOverride
            and _blank_id(id)
            and not OptBoolean.of(use_input).is_set
            and not OptBoolean.of(tolerate_missing).is_set
        ):
            return _EMPTY
        return object.__new__(cls)

    def __init__(
        self,
        id: Hashable | None = None,  # noqa: A002
        use_input: OptBooleanLike = None,
        tolerate_missing: OptBooleanLike = None,
    ) -> None:
        if self is not _EMPTY:
            _assign(self, id, use_input, tolerate_missing)

    def __reduce__(self) -> tuple[type[InjectOverride], tuple[object, ...]]:
        return (type(self), (self.id, self.use_input, self.tolerate_missing))

    # -----------------
    # Factory methods
    # -----------------

    @classmethod
    def empty(cls) -> InjectOverride:
        return _EMPTY

    @classmethod
    def construct(
        cls,
        id: Hashable | None = None,  # noqa: A002
        use_input: OptBooleanLike = None,
        tolerate_missing: OptBooleanLike = None,
    ) -> InjectOverride:
        return cls(id, OptBoolean.of(use_input), OptBoolean.of(tolerate_missing))

    @classmethod
    def from_spec(cls, spec: InjectSpec | Mapping[str, object] | None) -> InjectOverride:
        if spec is None:
            return _EMPTY
        if isinstance(spec, InjectSpec):
            return cls.construct(spec.id, spec.use_input, spec.tolerate_missing)
        if isinstance(spec, Mapping):
            return cls.from_dict(spec)
        raise TypeError(f"cannot build InjectOverride from {type(spec).__name__}")

    @classmethod
    def from_dict(cls, data: Mapping[str, object]) -> InjectOverride:
        unknown = sorted(str(key) for key in data if key not in _SPEC_KEYS)
        if unknown:
            raise ValueError(
                f"InjectOverride: unexpected fields {unknown}; allowed {sorted(_SPEC_KEYS)}"
            )
        raw_id = data.get("id")
        if raw_id is not None and not isinstance(raw_id, Hashable):
            raise ValueError(f"InjectOverride.id: must be hashable, got {type(raw_id).__name__}")
        return cls.construct(
            raw_id,
            _flag(data.get("use_input"), "InjectOverride.use_input"),
            _flag(data.get("tolerate_missing"), "InjectOverride.tolerate_missing"),
        )

    @classmethod
    def for_id(cls, id: Hashable | None) -> InjectOverride:  # noqa: A002
        return cls.construct(id, None, None)

    # -----------------
    # Copy-on-change
    # -----------------

    def with_id(self, id: Hashable | None) -> InjectOverride:  # noqa: A002
        if _blank_id(id):
            id = None  # noqa: A001
        if _same_id(id, self.id):
            return self
        return InjectOverride.construct(id, self.use_input, self.tolerate_missing)

    def with_use_input(self, use_input: OptBooleanLike) -> InjectOverride:
        flag = OptBoolean.of(use_input)
        if flag is self.use_input:
            return self
        return InjectOverride.construct(self.id, flag, self.tolerate_missing)

    def with_tolerate_missing(self, tolerate_missing: OptBooleanLike) -> InjectOverride:
        flag = OptBoolean.of(tolerate_missing)
        if flag is self.tolerate_missing:
            return self
        return InjectOverride.construct(self.id, self.use_input, flag)

    def with_overrides(self, overrides: InjectOverride | None) -> InjectOverride:
        """Merge ``overrides`` on top of this value; its set fields win."""
        if overrides is None or overrides is _EMPTY or overrides is self:
            return self
        merged = self
        if overrides.id is not None:
            merged = merged.with_id(overrides.id)
        if overrides.use_input.is_set:
            merged = merged.with_use_input(overrides.use_input)
        if overrides.tolerate_missing.is_set:
            merged = merged.with_tolerate_missing(overrides.tolerate_missing)
        return merged

    # -----------------
    # Accessors
    # -----------------

    @property
    def has_id(self) -> bool:
        return self.id is not None

    @property
    def is_empty(self) -> bool:
        return self.id is None and not self.use_input.is_set and not self.tolerate_missing.is_set

    def will_use_input(self, default_setting: bool) -> bool:
        return self.use_input.as_primitive(default_setting)

    def will_tolerate_missing(self, default_setting: bool) -> bool:
        return self.tolerate_missing.as_primitive(default_setting)

    def to_dict(self) -> dict[str, object]:
        payload: dict[str, object] = {}
        if self.id is not None:
            payload["id"] = self.id
        if self.use_input.is_set:
            payload["use_input"] = self.use_input.as_bool()
        if self.tolerate_missing.is_set:
            payload["tolerate_missing"] = self.tolerate_missing.as_bool()
        return payload

    # -----------------
    # Standard methods
    # -----------------

    def __str__(self) -> str:
        id_text = "null" if self.id is None else str(self.id)
        return (
            f"InjectOverride(id={id_text},useInput={self.use_input.render()},"
            f"tolerateMissing={self.tolerate_missing.render()})"
        )

    __repr__ = __str__

    def __hash__(self) -> int:
        h = 1
        if self.id is not None:
            h += hash(self.id)
        if self.use_input.is_set:
            h += hash(self.use_input)
        if self.tolerate_missing.is_set:
            h += hash(self.tolerate_missing)
        return h

    def __eq__(self, other: object) -> bool:
        if other is self:
            return True
        if other is None or type(other) is not type(self):
            return False
        typed = cast("InjectOverride", other)
        return (
            _same_id(self.id, typed.id)
            and self.use_input is typed.use_input
            and self.tolerate_missing is typed.tolerate_missing
        )


def _blank_id(value: object) -> bool:
    return value is None or (isinstance(value, str) and not value)


def _same_id(left: object, right: object) -> bool:
    # 0 and False, or 1 and 1.0, are distinct identifiers.
    return left is right or (type(left) is type(right) and left == right)


def _assign(
    target: InjectOverride,
    id: Hashable | None,  # noqa: A002
    use_input: OptBooleanLike,
    tolerate_missing: OptBooleanLike,
) -> None:
    object.__setattr__(target, "id", None if _blank_id(id) else id)
    object.__setattr__(target, "use_input", OptBoolean.of(use_input))
    object.__setattr__(target, "tolerate_missing", OptBoolean.of(tolerate_missing))


_EMPTY: Final[InjectOverride] = object.__new__(InjectOverride)
_assign(_EMPTY, None, None, None)


@dataclass(frozen=True, slots=True)
class InjectDefaults:
    """Engine-wide fallbacks applied when an override leaves a flag unset."""

    use_input: bool = True
    tolerate_missing: bool = False

    @classmethod
    def from_config(cls, config: Mapping[str, object]) -> InjectDefaults:
        section = config.get("inject")
        if not isinstance(section, Mapping):
            return cls()
        use_input = section.get("default_use_input", True)
        tolerate_missing = section.get("default_tolerate_missing", False)
        if not isinstance(use_input, bool):
            raise ValueError("inject.default_use_input must be a bool")
        if not isinstance(tolerate_missing, bool):
            raise ValueError("inject.default_tolerate_missing must be a bool")
        return cls(use_input=use_input, tolerate_missing=tolerate_missing)

    def use_input_for(self, override: InjectOverride) -> bool:
        return override.will_use_input(self.use_input)

    def tolerate_missing_for(self, override: InjectOverride) -> bool:
        return override.will_tolerate_missing(self.tolerate_missing)


def _flag(value: object, path: str) -> OptBoolean:
    try:
        return OptBoolean.of(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{path}: {exc}") from exc
