"""
Canvango Warranty Test Suite
============================

Test organization:
- tests/unit/                 - Shared library tests (auth, domain models)
- tests/services/warranty/    - Claim lifecycle, storage, realtime and API tests

Run tests:
    pytest                          # All tests
    pytest tests/unit               # Unit tests only
    pytest tests/services/warranty  # Warranty service only
"""
