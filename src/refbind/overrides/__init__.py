"""Override-merge values: immutable, field-level "optionally overridden" settings."""

from refbind.overrides.catalog import (
    CatalogLoadError,
    DuplicatePropertyError,
    PropertyOverrideCatalog,
    PropertyOverrides,
)
from refbind.overrides.inject import InjectDefaults, InjectOverride, InjectSpec
from refbind.overrides.tristate import OptBoolean, OptBooleanLike
from refbind.overrides.type_override import TypeOverride

__all__ = [
    "CatalogLoadError",
    "DuplicatePropertyError",
    "InjectDefaults",
    "InjectOverride",
    "InjectSpec",
    "OptBoolean",
    "OptBooleanLike",
    "PropertyOverrideCatalog",
    "PropertyOverrides",
    "TypeOverride",
]
