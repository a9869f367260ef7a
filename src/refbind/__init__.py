"""
refbind — object identity resolution and override-merge values

File: src/refbind/__init__.py

Purpose
- Package root. Defines public package-level metadata and import boundaries.

What should be included in this file
- Version export and a small public API surface.
- Subpackages: ``identity`` (keys, generators, resolvers, session tracking),
  ``overrides`` (tri-state flags, inject and type overrides, property catalog),
  ``config``, ``observability``, ``domain``.

Functional requirements
- Must not have side effects at import time (no config loading, no logging init).
"""

from refbind.identity import (
    NOT_FOUND,
    IdentityKey,
    ObjectIdConflictError,
    SimpleIdentityResolver,
)
from refbind.overrides import InjectOverride, OptBoolean

__version__ = "0.1.0"

__all__ = [
    "NOT_FOUND",
    "IdentityKey",
    "InjectOverride",
    "ObjectIdConflictError",
    "OptBoolean",
    "SimpleIdentityResolver",
    "__version__",
]
