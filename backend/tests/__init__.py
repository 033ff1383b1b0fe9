"""
Test Suite

Structure:
    tests/
    ├── conftest.py         # In-memory fixtures and the reference circuits
    ├── unit/
    │   ├── test_engine/    # Resolver, tracker, executor, history, locking
    │   ├── test_services/  # Circuit, status and action configuration
    │   └── test_utils/     # Tokens and error payloads
    └── integration/
        └── test_api/       # HTTP endpoints and the workflow client

To run tests:
    pytest backend/tests/
    pytest backend/tests/unit/
    pytest backend/tests/integration/
"""
