"""
CCM Data Server Test Suite.

This package contains:
- unit/: Unit tests (no external dependencies)
- integration/: HTTP gateway against the in-memory store, MongoDB backend
  (the latter only with CCM_MONGO_TESTS=1)
"""
