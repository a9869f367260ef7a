"""
refbind — domain helpers

File: src/refbind/domain/__init__.py

Purpose
- Identifier helpers shared by the identity and observability layers.

Functional requirements
- No IO side effects; ids are generated from time and ``secrets`` only.
"""
