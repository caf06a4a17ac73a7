"""Shared pytest fixtures for the NDC Calculator test suite.

Async tests run on asyncio through the anyio pytest plugin.
"""

import pytest


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
