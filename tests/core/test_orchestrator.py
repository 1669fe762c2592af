"""Unit tests for AcquisitionOrchestrator."""

from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock

import pytest

from reelgrab.clients import ClientOperationError, ClientState, DownloadStatus
from reelgrab.core import AcquisitionOrchestrator
from reelgrab.core.models import (
    AcquisitionRecord,
    CommandStatus,
    CurrentFile,
    OperationNotAllowedError,
    RecordState,
    WantedItem,
    utcnow,
)
from reelgrab.db import MemoryLibraryStore
from reelgrab.indexers import IndexerResult
from reelgrab.quality import QualityTier

pytestmark = pytest.mark.anyio

RELEASE = "Dune.2021.1080p.WEB-DL.DDP5.1.H.264-GRP"


def make_result(title: str = RELEASE, seeders: int = 20) -> IndexerResult:
    return IndexerResult(
        title=title,
        link=f"https://tracker.example/{title}.torrent",
        size=4_000_000_000,
        seeders=seeders,
        indexer_name="jackett",
    )


def downloading(progress: float, state: ClientState = ClientState.DOWNLOADING, **kwargs) -> dict:
    return {"hash1": DownloadStatus(external_id="hash1", progress=progress, state=state, **kwargs)}


# --- Fixtures ---


@pytest.fixture
async def wanted(store: MemoryLibraryStore) -> WantedItem:
    """Add a monitored movie to the store."""
    return await store.add_wanted_item(WantedItem(title="Dune", year=2021))


@pytest.fixture
def add_record(store: MemoryLibraryStore, wanted: WantedItem):
    """Factory storing a grabbed record for the wanted item."""

    async def factory(state: RecordState = RecordState.GRABBED, **kwargs) -> AcquisitionRecord:
        now = utcnow()
        fields = {
            "wanted_id": wanted.id,
            "title": wanted.title,
            "state": state,
            "client_name": "qbit",
            "external_id": "hash1",
            "release_title": RELEASE,
            "grabbed_at": now,
            "last_progress_at": now,
        }
        fields.update(kwargs)
        return await store.create_record(AcquisitionRecord(**fields))

    return factory


# --- Tests for the search loop ---


class TestSearchPass:
    """Tests for AcquisitionOrchestrator.search_pass."""

    async def test_grabs_best_release(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        mock_indexer: MagicMock,
        mock_torrent_client: MagicMock,
    ) -> None:
        mock_indexer.search.return_value = [
            make_result("Dune.2021.720p.WEB-DL.DDP5.1.H.264-GRP"),
            make_result(),
        ]

        stats = await orchestrator.search_pass()

        assert stats.searched == 1
        assert stats.grabbed == 1
        mock_torrent_client.submit.assert_awaited_once_with(f"https://tracker.example/{RELEASE}.torrent")
        record = await store.get_active_record_for_wanted(wanted.id)
        assert record is not None
        assert record.state is RecordState.GRABBED
        assert record.external_id == "hash1"
        assert record.client_name == "qbit"
        assert record.release_title == RELEASE
        assert record.tier is QualityTier.WEBDL_1080P
        assert record.score is not None

    async def test_no_result_backs_off(
        self, orchestrator: AcquisitionOrchestrator, store: MemoryLibraryStore, wanted: WantedItem
    ) -> None:
        stats = await orchestrator.search_pass()

        assert stats.no_result == 1
        record = await store.get_active_record_for_wanted(wanted.id)
        assert record.state is RecordState.PENDING
        assert record.search_attempts == 1
        delay = record.next_search_at - utcnow()
        assert timedelta(minutes=14) < delay <= timedelta(minutes=15)

        # Not due again until the backoff expires
        assert (await orchestrator.search_pass()).searched == 0

    async def test_record_changed_before_search_is_kept(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        add_record,
        mock_indexer: MagicMock,
    ) -> None:
        """A record cancelled after it was picked up is not searched."""
        record = await add_record(RecordState.PENDING, external_id=None, client_name=None)
        stale = await store.get_record(record.id)
        current = await store.get_record(record.id)
        current.transition(RecordState.CANCELLED, "Cancelled by user")
        await store.update_record(current)

        assert not await orchestrator._search_record(stale, wanted)

        assert (await store.get_record(record.id)).state is RecordState.CANCELLED
        mock_indexer.search.assert_not_awaited()

    async def test_backoff_is_capped(
        self,
        orchestrator: AcquisitionOrchestrator,
        add_record,
        default_config,
    ) -> None:
        record = await add_record(RecordState.SEARCHING, search_attempts=30)

        await orchestrator._back_off(record.id, "No acceptable release found")

        stored = await orchestrator.get_record(record.id)
        delay = stored.next_search_at - utcnow()
        assert delay <= timedelta(minutes=default_config.search.backoff_max)
        assert delay > timedelta(minutes=default_config.search.backoff_max - 1)
        assert stored.search_attempts == 31

    async def test_rejected_submit_returns_to_pending(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        mock_indexer: MagicMock,
        mock_torrent_client: MagicMock,
    ) -> None:
        mock_indexer.search.return_value = [make_result()]
        mock_torrent_client.submit.side_effect = ClientOperationError("bad torrent")

        stats = await orchestrator.search_pass()

        assert stats.grabbed == 0
        record = await store.get_active_record_for_wanted(wanted.id)
        assert record.state is RecordState.PENDING
        assert "rejected release" in record.last_error
        assert record.next_search_at is not None

    async def test_item_at_cutoff_is_not_searched(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        mock_indexer: MagicMock,
    ) -> None:
        """Items that already have a file and no auto-upgrade are left alone."""
        await store.add_wanted_item(
            WantedItem(
                title="Heat",
                year=1995,
                current_file=CurrentFile(100, QualityTier.WEBDL_1080P, "/movies/Heat.mkv"),
            )
        )

        stats = await orchestrator.search_pass()

        assert stats.searched == 0
        mock_indexer.search.assert_not_awaited()

    async def test_recover_records(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_scheduler: MagicMock,
    ) -> None:
        searching = await add_record(RecordState.SEARCHING)
        other = await store.add_wanted_item(WantedItem(title="Heat", year=1995))
        importing = await add_record(RecordState.IMPORTING, wanted_id=other.id)

        await orchestrator.recover_records()

        assert (await store.get_record(searching.id)).state is RecordState.PENDING
        mock_scheduler.add_job.assert_called_once()
        assert mock_scheduler.add_job.call_args.kwargs["id"] == f"import_{importing.id}"


# --- Tests for the poll loop ---


class TestPollClient:
    """Tests for AcquisitionOrchestrator.poll_client."""

    async def test_progress_update_is_idempotent(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record()
        mock_torrent_client.get_statuses.return_value = downloading(50.0)

        first = await orchestrator.poll_client("qbit")
        after_first = await store.get_record(record.id)
        second = await orchestrator.poll_client("qbit")
        after_second = await store.get_record(record.id)

        assert first.updated == 1
        assert after_first.state is RecordState.DOWNLOADING
        assert after_first.progress == 50.0
        assert second.checked == 1
        assert second.updated == 0
        assert after_second.events == after_first.events
        assert after_second.updated_at == after_first.updated_at

    async def test_pause_and_resume(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING, progress=20.0)

        mock_torrent_client.get_statuses.return_value = downloading(20.0, ClientState.PAUSED)
        await orchestrator.poll_client("qbit")
        assert (await store.get_record(record.id)).state is RecordState.PAUSED

        mock_torrent_client.get_statuses.return_value = downloading(25.0)
        await orchestrator.poll_client("qbit")
        assert (await store.get_record(record.id)).state is RecordState.DOWNLOADING

    async def test_stall_detected_once(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        stall_hook = AsyncMock()
        orchestrator.stall_hook = stall_hook
        record = await add_record(
            RecordState.DOWNLOADING,
            progress=50.0,
            last_progress_at=utcnow() - timedelta(hours=7),
        )
        mock_torrent_client.get_statuses.return_value = downloading(50.0)

        await orchestrator.poll_client("qbit")
        await orchestrator.poll_client("qbit")

        assert (await store.get_record(record.id)).state is RecordState.STALLED
        stall_hook.assert_awaited_once()
        assert stall_hook.call_args.args[0].id == record.id

    async def test_stalled_download_recovers(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.STALLED, progress=50.0)
        mock_torrent_client.get_statuses.return_value = downloading(60.0)

        await orchestrator.poll_client("qbit")

        assert (await store.get_record(record.id)).state is RecordState.DOWNLOADING

    async def test_missing_download_fails(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)
        mock_torrent_client.get_statuses.return_value = {}

        stats = await orchestrator.poll_client("qbit")

        stored = await store.get_record(record.id)
        assert stats.failed == 1
        assert stored.state is RecordState.FAILED
        assert "disappeared" in stored.last_error

    async def test_client_error_state_fails(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)
        mock_torrent_client.get_statuses.return_value = downloading(
            10.0, ClientState.ERROR, error="No space left on device"
        )

        await orchestrator.poll_client("qbit")

        stored = await store.get_record(record.id)
        assert stored.state is RecordState.FAILED
        assert "No space left on device" in stored.last_error

    async def test_complete_hands_off_once(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
        mock_scheduler: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING, progress=90.0)
        mock_torrent_client.get_statuses.return_value = downloading(
            100.0, ClientState.SEEDING, download_path="/downloads/Dune"
        )

        stats = await orchestrator.poll_client("qbit")
        await orchestrator.poll_client("qbit")

        stored = await store.get_record(record.id)
        assert stats.completed == 1
        assert stored.state is RecordState.IMPORTING
        assert stored.download_path == "/downloads/Dune"
        mock_scheduler.add_job.assert_called_once()
        kwargs = mock_scheduler.add_job.call_args.kwargs
        assert kwargs["id"] == f"import_{record.id}"
        assert kwargs["args"] == [record.id]
        assert not orchestrator._handoff(stored)

    async def test_unreachable_client_is_skipped(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING, progress=30.0)
        mock_torrent_client.get_statuses.side_effect = ClientOperationError("connection refused")

        stats = await orchestrator.poll_client("qbit")

        assert stats.skipped == 1
        assert stats.checked == 0
        assert (await store.get_record(record.id)).state is RecordState.DOWNLOADING

    async def test_no_records_no_request(
        self, orchestrator: AcquisitionOrchestrator, mock_torrent_client: MagicMock
    ) -> None:
        await orchestrator.poll_client("qbit")

        mock_torrent_client.get_statuses.assert_not_awaited()


# --- Tests for import handoff ---


class TestRunImport:
    """Tests for the scheduled import job."""

    async def test_runs_importer_and_clears_guard(
        self,
        orchestrator: AcquisitionOrchestrator,
        add_record,
        mock_importer: MagicMock,
    ) -> None:
        record = await add_record(RecordState.IMPORTING, download_path="/downloads/Dune")
        assert orchestrator._handoff(record)

        await orchestrator._run_import(record.id)

        mock_importer.import_record.assert_awaited_once()
        assert record.id not in orchestrator._importing

    async def test_crash_marks_failed(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_importer: MagicMock,
    ) -> None:
        record = await add_record(RecordState.IMPORTING, download_path="/downloads/Dune")
        mock_importer.import_record.side_effect = RuntimeError("disk gone")

        await orchestrator._run_import(record.id)

        stored = await store.get_record(record.id)
        assert stored.state is RecordState.FAILED
        assert stored.last_error == "disk gone"


# --- Tests for commands ---


class TestCancelRecord:
    """Tests for AcquisitionOrchestrator.cancel_record."""

    async def test_cancel_download(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)

        response = await orchestrator.cancel_record(record.id)

        assert response.status is CommandStatus.SUCCESS
        mock_torrent_client.cancel.assert_awaited_once_with("hash1", delete_files=True)
        assert (await store.get_record(record.id)).state is RecordState.CANCELLED

    async def test_conflict_while_importing(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.IMPORTING)

        response = await orchestrator.cancel_record(record.id)

        assert response.status is CommandStatus.CONFLICT
        mock_torrent_client.cancel.assert_not_awaited()
        assert (await store.get_record(record.id)).state is RecordState.IMPORTING

    async def test_client_failure_keeps_record(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)
        mock_torrent_client.cancel.side_effect = ClientOperationError("unreachable")

        response = await orchestrator.cancel_record(record.id)

        assert response.status is CommandStatus.ERROR
        assert (await store.get_record(record.id)).state is RecordState.DOWNLOADING

    async def test_terminal_record_is_invalid(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.IMPORTED)

        response = await orchestrator.cancel_record(record.id)

        assert response.status is CommandStatus.INVALID

    async def test_pending_needs_no_client(
        self,
        orchestrator: AcquisitionOrchestrator,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.PENDING, external_id=None, client_name=None)

        response = await orchestrator.cancel_record(record.id)

        assert response.status is CommandStatus.SUCCESS
        mock_torrent_client.cancel.assert_not_awaited()

    async def test_not_found(self, orchestrator: AcquisitionOrchestrator) -> None:
        assert (await orchestrator.cancel_record(42)).status is CommandStatus.NOT_FOUND


class TestRemoveRecord:
    """Tests for AcquisitionOrchestrator.remove_record."""

    async def test_remove_despite_client_error(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)
        mock_torrent_client.cancel.side_effect = ClientOperationError("unreachable")

        response = await orchestrator.remove_record(record.id)

        assert response.status is CommandStatus.SUCCESS
        assert await store.get_record(record.id) is None


class TestRejectRecord:
    """Tests for AcquisitionOrchestrator.reject_record."""

    async def test_blocklists_and_queues_replacement(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        add_record,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)

        response = await orchestrator.reject_record(record.id, "Wrong audio language")

        assert response.status is CommandStatus.SUCCESS
        assert response.record_id != record.id
        assert (await store.get_record(record.id)).state is RecordState.CANCELLED
        replacement = await store.get_active_record_for_wanted(wanted.id)
        assert replacement.id == response.record_id
        assert replacement.state is RecordState.PENDING
        mock_torrent_client.cancel.assert_awaited_once()

        (entry,) = await store.get_blocklist()
        assert entry.release_title == RELEASE
        assert entry.reason == "Wrong audio language"
        settings = await orchestrator.build_scoring_settings(wanted.id)
        assert "dune 2021 1080p web dl ddp5 1 h 264 grp" in settings.blocklisted_titles

    async def test_rejected_release_never_grabbed_again(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        add_record,
        mock_indexer: MagicMock,
        mock_torrent_client: MagicMock,
    ) -> None:
        record = await add_record(RecordState.FAILED)
        await orchestrator.reject_record(record.id)
        mock_indexer.search.return_value = [make_result()]

        response = await orchestrator.search_now(wanted.id)

        assert response.status is CommandStatus.SUCCESS
        mock_torrent_client.submit.assert_not_awaited()

    async def test_without_release(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.PENDING, release_title=None)

        assert (await orchestrator.reject_record(record.id)).status is CommandStatus.INVALID


class TestRetryImport:
    """Tests for AcquisitionOrchestrator.retry_import."""

    async def test_retry_failed_import(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        add_record,
        mock_scheduler: MagicMock,
    ) -> None:
        record = await add_record(RecordState.FAILED, download_path="/downloads/Dune")

        response = await orchestrator.retry_import(record.id)

        assert response.status is CommandStatus.SUCCESS
        assert (await store.get_record(record.id)).state is RecordState.IMPORTING
        mock_scheduler.add_job.assert_called_once()

    async def test_nothing_to_retry(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.FAILED, download_path=None)

        assert (await orchestrator.retry_import(record.id)).status is CommandStatus.INVALID

    async def test_retry_while_import_in_flight(
        self,
        orchestrator: AcquisitionOrchestrator,
        add_record,
        mock_scheduler: MagicMock,
    ) -> None:
        record = await add_record(RecordState.FAILED, download_path="/downloads/Dune")
        orchestrator._importing.add(record.id)

        response = await orchestrator.retry_import(record.id)

        assert response.status is CommandStatus.CONFLICT
        assert "importing" in response.message
        mock_scheduler.add_job.assert_not_called()


class TestCommandChecks:
    """Tests for the state checks shared by record commands."""

    async def test_importing_record_is_busy(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.IMPORTING)

        with pytest.raises(OperationNotAllowedError) as exc_info:
            orchestrator._check_command(record, "cancelled", RecordState.CANCELLED)

        assert exc_info.value.busy

    async def test_unreachable_state_is_not_busy(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.IMPORTED)

        with pytest.raises(OperationNotAllowedError, match="cannot be cancelled") as exc_info:
            orchestrator._check_command(record, "cancelled", RecordState.CANCELLED)

        assert not exc_info.value.busy

    async def test_downloading_record_passes(
        self, orchestrator: AcquisitionOrchestrator, add_record
    ) -> None:
        record = await add_record(RecordState.DOWNLOADING)

        orchestrator._check_command(record, "cancelled", RecordState.CANCELLED)


class TestManualSearch:
    """Tests for interactive search and manual grabs."""

    async def test_search_now_unknown_item(self, orchestrator: AcquisitionOrchestrator) -> None:
        assert (await orchestrator.search_now(99)).status is CommandStatus.NOT_FOUND

    async def test_search_releases(
        self,
        orchestrator: AcquisitionOrchestrator,
        wanted: WantedItem,
        mock_indexer: MagicMock,
    ) -> None:
        mock_indexer.search.return_value = [make_result(), make_result("Dune.2021.CAM.x264-GRP")]

        ranked = await orchestrator.search_releases(wanted.id)

        assert [c.result.title for c in ranked] == [RELEASE]

    async def test_grab_result(
        self,
        orchestrator: AcquisitionOrchestrator,
        store: MemoryLibraryStore,
        wanted: WantedItem,
        mock_torrent_client: MagicMock,
    ) -> None:
        response = await orchestrator.grab_result(wanted.id, make_result())

        assert response.status is CommandStatus.SUCCESS
        record = await store.get_record(response.record_id)
        assert record.state is RecordState.GRABBED
        mock_torrent_client.submit.assert_awaited_once()

    async def test_grab_result_conflict(
        self,
        orchestrator: AcquisitionOrchestrator,
        wanted: WantedItem,
        add_record,
    ) -> None:
        await add_record(RecordState.DOWNLOADING)

        response = await orchestrator.grab_result(wanted.id, make_result())

        assert response.status is CommandStatus.CONFLICT
