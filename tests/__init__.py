"""
Catalog store test suite.

This package contains:
- unit/: Unit tests (in-memory stores, temporary snapshot files)
- integration/: Integration tests (CLI commands against a snapshot file)
"""
