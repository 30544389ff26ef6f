import pytest

from blocksync import Config


@pytest.fixture(autouse=True)
def _reset_config():
    """Every test starts and ends with default configuration."""
    Config.reset_defaults()
    yield
    Config.reset_defaults()
