"""Shared test fixtures and configuration for reelgrab tests."""

import pytest

import reelgrab.logger as logger_module
from reelgrab import config
from reelgrab.db import MemoryLibraryStore


def pytest_configure(config: pytest.Config) -> None:
    """Initialize logger once for all tests."""
    if getattr(logger_module, "_logger_instance", None) is None:
        logger_module.init_logger()


@pytest.fixture
def anyio_backend() -> str:
    """Run anyio-marked tests on asyncio, the runtime reelgrab targets."""
    return "asyncio"


@pytest.fixture(autouse=True)
def default_config(monkeypatch: pytest.MonkeyPatch) -> config.Config:
    """Give every test a fresh default configuration."""
    cfg = config.Config()
    monkeypatch.setattr(config, "cfg", cfg)
    return cfg


@pytest.fixture
def store() -> MemoryLibraryStore:
    """Create an empty in-memory library store."""
    return MemoryLibraryStore()
