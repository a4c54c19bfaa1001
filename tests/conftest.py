"""Root conftest for all tests - provides shared fixtures."""

import os

# Keep the environment from leaking a real endpoint or credentials into
# module-level config (must be set before cloudlib.core.config is imported)
os.environ.setdefault("CLOUDLIB_ENDPOINT", "https://catalog.test")
os.environ.setdefault("CLOUDLIB_ALLOW_REST_FALLBACK", "true")

import pytest
import pytest_asyncio

from cloudlib.catalog import client as client_module
from cloudlib.catalog.client import CloudLibClient

from fakes import FakeCatalog, client_options, http_client


def pytest_addoption(parser):
    """Add --run-integration option to pytest."""
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="Run tests against a live Cloud Library (CLOUDLIB_ENDPOINT)",
    )


def pytest_configure(config):
    """Register the integration marker."""
    config.addinivalue_line(
        "markers", "integration: mark test as requiring a live Cloud Library"
    )


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless --run-integration is provided."""
    if config.getoption("--run-integration"):
        return

    skip_marker = pytest.mark.skip(reason="Need --run-integration to run")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_marker)


@pytest.fixture
def catalog():
    """Fresh in-memory catalog for each test."""
    return FakeCatalog()


@pytest_asyncio.fixture
async def client(catalog):
    """CloudLibClient wired to the in-memory catalog over httpx.MockTransport."""
    http = http_client(catalog)
    async with CloudLibClient(client_options(), http_client=http) as c:
        yield c
    await http.aclose()


@pytest.fixture(autouse=True)
def reset_global_client():
    """Drop the global client after each test."""
    yield
    client_module._client = None
