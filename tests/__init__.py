"""
FlexiBase Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: Integration tests (Database facade, local files, in-memory blob store)
"""
