"""Registry of per-property override declarations.

Properties are registered explicitly, either programmatically or from a YAML
document of the form::

    orders.Order:
      customer:
        id: customer-service
        use_input: false
        tolerate_missing: true
      audit_log: {}

Top-level keys name the owning type, second-level keys the property, and the
leaf mapping is an :class:`~refbind.overrides.inject.InjectSpec`. Type
overrides carry Python types and are registered programmatically only.
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import TypeAlias, cast

import yaml

from refbind.identity.keys import qualified_name
from refbind.overrides.inject import InjectOverride, InjectSpec
from refbind.overrides.type_override import TypeOverride

PathLike: TypeAlias = str | os.PathLike[str]
PropertyRef: TypeAlias = tuple[str, str]

__all__ = [
    "CatalogLoadError",
    "DuplicatePropertyError",
    "PropertyOverrideCatalog",
    "PropertyOverrides",
]


class CatalogLoadError(ValueError):
    """Raised when a YAML override catalog cannot be parsed."""


class DuplicatePropertyError(ValueError):
    """Raised when a property is registered twice with different values."""


@dataclass(frozen=True, slots=True)
class PropertyOverrides:
    """All override values attached to one property."""

    inject: InjectOverride = field(default_factory=InjectOverride.empty)
    serialize_as: TypeOverride = field(default_factory=TypeOverride.empty)
    deserialize_as: TypeOverride = field(default_factory=TypeOverride.empty)

    @property
    def is_empty(self) -> bool:
        return self.inject.is_empty and self.serialize_as.is_empty and self.deserialize_as.is_empty


_NO_OVERRIDES = PropertyOverrides()


class PropertyOverrideCatalog:
    """Mapping of ``(owner, property)`` to :class:`PropertyOverrides`."""

    def __init__(self) -> None:
        self._entries: dict[PropertyRef, PropertyOverrides] = {}

    @classmethod
    def load(cls, path: PathLike) -> PropertyOverrideCatalog:
        resolved = Path(path)
        try:
            with resolved.open("r", encoding="utf-8") as handle:
                text = handle.read()
        except OSError as exc:
            raise CatalogLoadError(f"{resolved}: cannot read catalog ({exc})") from exc
        return cls.from_yaml(text, source=str(resolved))

    @classmethod
    def from_yaml(cls, text: str, *, source: str = "<string>") -> PropertyOverrideCatalog:
        try:
            loaded = cast("object", yaml.safe_load(text))
        except yaml.YAMLError as exc:
            raise CatalogLoadError(f"{source}: invalid YAML ({exc})") from exc

        catalog = cls()
        if loaded is None:
            return catalog
        if not isinstance(loaded, Mapping):
            raise CatalogLoadError(
                f"{source}: expected top-level mapping, got {type(loaded).__name__}"
            )

        for owner in sorted(loaded, key=str):
            properties = loaded[owner]
            location = f"{source}:{owner}"
            if not isinstance(owner, str) or not owner.strip():
                raise CatalogLoadError(f"{location}: owner names must be non-empty strings")
            if not isinstance(properties, Mapping):
                raise CatalogLoadError(
                    f"{location}: expected mapping of properties, got {type(properties).__name__}"
                )
            for prop in sorted(properties, key=str):
                declaration = properties[prop]
                prop_location = f"{location}.{prop}"
                if declaration is None:
                    declaration = {}
                if not isinstance(prop, str) or not isinstance(declaration, Mapping):
                    raise CatalogLoadError(
                        f"{prop_location}: expected property name mapped to a declaration"
                    )
                try:
                    catalog.register_inject(owner, prop, InjectOverride.from_dict(declaration))
                except ValueError as exc:
                    raise CatalogLoadError(f"{prop_location}: {exc}") from exc
        return catalog

    def register_inject(
        self,
        owner: str | type,
        prop: str,
        declaration: InjectSpec | InjectOverride | Mapping[str, object] | None,
    ) -> InjectOverride:
        value = (
            declaration
            if isinstance(declaration, InjectOverride)
            else InjectOverride.from_spec(declaration)
        )
        ref = _property_ref(owner, prop)
        current = self._entries.get(ref, _NO_OVERRIDES)
        if ref in self._entries and current.inject != value and not current.inject.is_empty:
            raise DuplicatePropertyError(
                f"{ref[0]}.{ref[1]}: already declares {current.inject}, got {value}"
            )
        self._entries[ref] = PropertyOverrides(
            inject=value,
            serialize_as=current.serialize_as,
            deserialize_as=current.deserialize_as,
        )
        return value

    def register_types(
        self,
        owner: str | type,
        prop: str,
        *,
        serialize_as: TypeOverride | None = None,
        deserialize_as: TypeOverride | None = None,
    ) -> PropertyOverrides:
        ref = _property_ref(owner, prop)
        current = self._entries.get(ref, _NO_OVERRIDES)
        updated = PropertyOverrides(
            inject=current.inject,
            serialize_as=_merge_type(current.serialize_as, serialize_as, ref, "serialize_as"),
            deserialize_as=_merge_type(
                current.deserialize_as, deserialize_as, ref, "deserialize_as"
            ),
        )
        self._entries[ref] = updated
        return updated

    def overrides_for(self, owner: str | type, prop: str) -> PropertyOverrides:
        return self._entries.get(_property_ref(owner, prop), _NO_OVERRIDES)

    def inject_for(self, owner: str | type, prop: str) -> InjectOverride:
        return self.overrides_for(owner, prop).inject

    def properties(self) -> tuple[PropertyRef, ...]:
        return tuple(sorted(self._entries))

    def dump_yaml(self) -> str:
        """Render the inject declarations as deterministic YAML."""
        payload: dict[str, dict[str, dict[str, object]]] = {}
        for owner, prop in self.properties():
            payload.setdefault(owner, {})[prop] = self._entries[(owner, prop)].inject.to_dict()
        rendered = yaml.safe_dump(
            payload,
            sort_keys=True,
            default_flow_style=False,
            allow_unicode=False,
            width=120,
        )
        return rendered if rendered.endswith("\n") else rendered + "\n"

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: object) -> bool:
        return item in self._entries


def _property_ref(owner: str | type, prop: str) -> PropertyRef:
    owner_name = qualified_name(owner) if isinstance(owner, type) else owner
    if not isinstance(owner_name, str) or not owner_name.strip():
        raise ValueError("owner must be a type or a non-empty string")
    if not isinstance(prop, str) or not prop.strip():
        raise ValueError("property name must be a non-empty string")
    return owner_name, prop


def _merge_type(
    current: TypeOverride,
    incoming: TypeOverride | None,
    ref: PropertyRef,
    label: str,
) -> TypeOverride:
    if incoming is None or incoming == current:
        return current
    if not current.is_empty:
        raise DuplicatePropertyError(
            f"{ref[0]}.{ref[1]}: {label} already declares {current}, got {incoming}"
        )
    return incoming
