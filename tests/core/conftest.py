"""Shared fixtures for core tests."""

from pathlib import Path
from unittest.mock import AsyncMock, MagicMock

import pytest
from apscheduler.schedulers.asyncio import AsyncIOScheduler

from reelgrab import config
from reelgrab.clients import DownloadClient
from reelgrab.config import LibraryConfig
from reelgrab.core import AcquisitionOrchestrator, ImportManager, ReleaseSearcher
from reelgrab.core.models import ImportOutcome, ImportStatus
from reelgrab.db import MemoryLibraryStore
from reelgrab.indexers import IndexerBase, Protocol
from reelgrab.notifier import Notifier
from reelgrab.scanner import LibraryScanner


@pytest.fixture
def library_config(tmp_path: Path, default_config: config.Config) -> LibraryConfig:
    """Point the library roots at a temporary folder."""
    library = LibraryConfig(
        movies_dir=str(tmp_path / "library" / "movies"),
        tv_dir=str(tmp_path / "library" / "tv"),
        sample_size="1KB",
    )
    default_config.library = library
    return library


@pytest.fixture
def mock_torrent_client() -> MagicMock:
    """Create a mock torrent DownloadClient named qbit."""
    client = MagicMock(spec=DownloadClient)
    client.name = "qbit"
    client.protocol = Protocol.TORRENT
    client.submit = AsyncMock(return_value="hash1")
    client.get_statuses = AsyncMock(return_value={})
    client.cancel = AsyncMock()
    return client


@pytest.fixture
def mock_indexer() -> MagicMock:
    """Create a mock indexer returning no results."""
    indexer = MagicMock(spec=IndexerBase)
    indexer.name = "jackett"
    indexer.search = AsyncMock(return_value=[])
    return indexer


@pytest.fixture
def mock_scheduler() -> MagicMock:
    """Create a mock AsyncIOScheduler."""
    return MagicMock(spec=AsyncIOScheduler)


@pytest.fixture
def mock_importer() -> MagicMock:
    """Create a mock ImportManager."""
    importer = MagicMock(spec=ImportManager)
    importer.import_record = AsyncMock(return_value=ImportOutcome(status=ImportStatus.IMPORTED))
    return importer


@pytest.fixture
def mock_scanner() -> MagicMock:
    """Create a mock LibraryScanner."""
    scanner = MagicMock(spec=LibraryScanner)
    scanner.scan_path = AsyncMock(return_value=True)
    return scanner


@pytest.fixture
def mock_notifier() -> MagicMock:
    """Create a mock Notifier."""
    notifier = MagicMock(spec=Notifier)
    notifier.send_grab = AsyncMock(return_value=True)
    notifier.send_import_success = AsyncMock(return_value=True)
    notifier.send_import_failure = AsyncMock(return_value=True)
    notifier.send_download_failure = AsyncMock(return_value=True)
    return notifier


@pytest.fixture
def orchestrator(
    store: MemoryLibraryStore,
    mock_importer: MagicMock,
    mock_torrent_client: MagicMock,
    mock_indexer: MagicMock,
    mock_scheduler: MagicMock,
) -> AcquisitionOrchestrator:
    """Create an orchestrator with a real searcher and mocked edges."""
    return AcquisitionOrchestrator(
        database=store,
        searcher=ReleaseSearcher(timeout=5.0),
        importer=mock_importer,
        clients={"qbit": mock_torrent_client},
        indexers=[mock_indexer],
        scheduler=mock_scheduler,
    )

