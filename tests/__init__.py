"""
Vault Raft backup test suite.

This package contains:
- unit/: Unit tests (one component, in-process fakes)
- integration/: Full pipeline and entry point against in-process Vault and S3 fakes
"""
