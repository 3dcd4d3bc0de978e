"""Integration tests for pytriplesolar library.

These tests use real API credentials from .env file and make actual API calls.
They are marked with @pytest.mark.integration and skipped by default.

To run integration tests:
    pytest tests/integration -v -m integration

Environment variables required in .env:
    TRIPLESOLAR_USERNAME: Account email
    TRIPLESOLAR_PASSWORD: Account password
    TRIPLESOLAR_INTERFACE_ID: Interface to poll (optional, device tests are skipped without it)
    TRIPLESOLAR_API_URL: GraphQL endpoint (optional, defaults to production)
    TRIPLESOLAR_AUTH_URL: Auth backend (optional, defaults to production)
"""
