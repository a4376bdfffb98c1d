"""Unit tests for Vitruvi web modules.

Structure:
    tests/unit/web/
    ├── test_auth.py           # Passwords, tokens, auth dependency
    └── test_dependencies.py   # Shared route dependencies

Testing pattern:
    - Use FastAPI's TestClient for route testing
    - Exercise failures that happen before any database access
"""
