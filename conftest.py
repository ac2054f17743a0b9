"""
Root-level pytest configuration for the Graphiti client.

Configures:
- pytest-asyncio for async test support
- Custom markers (integration, etc.)
"""

import pytest


def pytest_configure(config):
    """Configure pytest with custom markers and settings."""
    config.addinivalue_line(
        "markers",
        "integration: marks tests as integration tests (may require network access)"
    )


# asyncio_mode is "auto" (see pyproject.toml) so async tests don't strictly
# need @pytest.mark.asyncio decorators
pytest_plugins = ["pytest_asyncio"]
