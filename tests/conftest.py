"""Test configuration and fixtures."""

import os

import pytest
import pytest_asyncio
from aiohttp.test_utils import TestServer

from image_inspector.core.types import DockerConfig
from tests.helpers import FakeDockerDaemon, build_tar, sample_entries


@pytest.fixture
def fake_daemon():
    """In-memory docker daemon state serving the sample tree."""
    return FakeDockerDaemon(archive=build_tar(sample_entries()))


@pytest_asyncio.fixture
async def daemon_server(fake_daemon):
    """Serve the fake daemon over TCP."""
    server = TestServer(fake_daemon.make_app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def docker_url(daemon_server):
    return f"tcp://{daemon_server.host}:{daemon_server.port}"


@pytest.fixture
def docker_config(docker_url):
    return DockerConfig(url=docker_url, timeout=30)


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test requiring a docker daemon"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")


def pytest_collection_modifyitems(config, items):
    """Skip integration tests unless a docker daemon is declared available."""
    skip_integration = pytest.mark.skip(reason="Docker daemon not available")

    for item in items:
        if (
            "integration" in item.keywords
            and os.getenv("DOCKER_AVAILABLE", "false").lower() != "true"
        ):
            item.add_marker(skip_integration)
