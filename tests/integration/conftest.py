"""Pytest configuration and fixtures for integration tests."""

from __future__ import annotations

import asyncio
import os
from pathlib import Path
from typing import TYPE_CHECKING

import pytest
from aiohttp import ClientSession
from dotenv import load_dotenv

from pytriplesolar.const import DEFAULT_API_URL, DEFAULT_AUTH_URL


if TYPE_CHECKING:
    from collections.abc import AsyncGenerator


# Load .env file from project root
env_path = Path(__file__).parents[2] / ".env"
load_dotenv(env_path)


@pytest.fixture(scope="session")
def integration_config() -> dict[str, str]:
    """Load integration test configuration from environment.

    Returns:
        Dictionary with API credentials and endpoints.
    """
    username = os.getenv("TRIPLESOLAR_USERNAME")
    password = os.getenv("TRIPLESOLAR_PASSWORD")

    if not username or not password:
        pytest.skip("Set TRIPLESOLAR_USERNAME and TRIPLESOLAR_PASSWORD in .env to run integration tests")

    return {
        "username": username,
        "password": password,
        "api_url": os.getenv("TRIPLESOLAR_API_URL", DEFAULT_API_URL),
        "auth_url": os.getenv("TRIPLESOLAR_AUTH_URL", DEFAULT_AUTH_URL),
    }


@pytest.fixture(scope="session")
def interface_id() -> str:
    """Get the interface to test against, skipping when none is configured."""
    value = os.getenv("TRIPLESOLAR_INTERFACE_ID")
    if not value:
        pytest.skip("Set TRIPLESOLAR_INTERFACE_ID in .env to run device integration tests")
    return value


@pytest.fixture
async def session() -> AsyncGenerator[ClientSession]:
    """Create aiohttp session for tests."""
    async with ClientSession() as sess:
        yield sess


@pytest.fixture(autouse=True)
async def rate_limit_delay(request: pytest.FixtureRequest) -> AsyncGenerator[None]:
    """Add a short delay after each integration test to avoid hammering the API."""
    yield
    if "integration" in request.keywords:
        await asyncio.sleep(2.0)
