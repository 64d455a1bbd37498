"""Policy Docs Test Suite.

This package contains unit and integration tests for the policy docs services.

Test Structure:
- unit/: Unit tests for individual functions and classes
- integration/: Tests against a real PostgreSQL document store
- fakes.py: In-memory document store shared by the unit tests
"""

__version__ = "0.1.0"
