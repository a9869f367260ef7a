"""
refbind — object identity

File: src/refbind/identity/__init__.py

Purpose
- Keys naming logical objects, generators producing them while encoding, and
  resolvers binding them back to instances while decoding.

Functional requirements
- Resolvers are per-session; a fresh one is obtained via ``new_for_deserialization``.
"""

from refbind.identity.generators import (
    DEFAULT_SEQUENCE_START,
    GeneratorStateError,
    IdentityGenerator,
    NoIdentityGenerator,
    PropertyGenerator,
    ReferenceGenerator,
    SequenceGenerator,
    UlidGenerator,
    UuidGenerator,
)
from refbind.identity.keys import IdentityKey, qualified_name
from refbind.identity.resolver import (
    DEFAULT_DESCRIPTION_MAX_LENGTH,
    NOT_FOUND,
    IdentityResolver,
    NotFound,
    ObjectIdConflictError,
    SimpleIdentityResolver,
    describe_value,
)
from refbind.identity.tracking import (
    BindingSession,
    ReferenceCallback,
    ReferenceTracker,
    TrackedReference,
    UnresolvedForwardReferenceError,
)

__all__ = [
    "BindingSession",
    "DEFAULT_DESCRIPTION_MAX_LENGTH",
    "DEFAULT_SEQUENCE_START",
    "GeneratorStateError",
    "IdentityGenerator",
    "IdentityKey",
    "IdentityResolver",
    "NOT_FOUND",
    "NoIdentityGenerator",
    "NotFound",
    "ObjectIdConflictError",
    "PropertyGenerator",
    "ReferenceCallback",
    "ReferenceGenerator",
    "ReferenceTracker",
    "SequenceGenerator",
    "SimpleIdentityResolver",
    "TrackedReference",
    "UlidGenerator",
    "UnresolvedForwardReferenceError",
    "UuidGenerator",
    "describe_value",
    "qualified_name",
]
