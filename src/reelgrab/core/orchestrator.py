"""Acquisition orchestrator for reelgrab.

Drives every acquisition record through its lifecycle::

    pending -> searching -> grabbed -> downloading -> {paused, stalled}
            -> importing -> {imported | failed | unmatched}

The orchestrator owns the lifecycle and progress fields of a record; the
import manager takes over once a record reaches ``importing``. Imports
run as fire-and-continue scheduler jobs, guarded so that a record is
never handed off twice.
"""

from collections.abc import Awaitable, Callable, Iterable
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

import anyio
from apscheduler.triggers.date import DateTrigger
from humanfriendly import format_size

from .. import config, logger
from ..clients import ClientOperationError, ClientState, DownloadStatus
from ..indexers import Protocol
from ..quality import (
    DEFAULT_TRUSTED_GROUPS,
    ScoringSettings,
    compute_quality_tier,
    cutoff_reached,
    evaluate,
    normalize_release_title,
    should_upgrade,
)
from ..release import parse
from .models import (
    POLLED_STATES,
    AcquisitionRecord,
    BlocklistEntry,
    CommandResponse,
    CommandStatus,
    OperationNotAllowedError,
    PollStats,
    RecordEvent,
    RecordState,
    SearchPassStats,
    WantedItem,
    utcnow,
)

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

    from ..clients import DownloadClient
    from ..db import LibraryStore
    from ..indexers import IndexerBase, IndexerResult
    from ..notifier import Notifier
    from ..quality import QualityTarget, QualityTier, ScoredCandidate
    from .importer import ImportManager
    from .models import ImportHistoryEntry
    from .searcher import ReleaseSearcher

StallHook = Callable[[AcquisitionRecord], Awaitable[None]]


class AcquisitionOrchestrator:
    """Search, grab, poll and hand off acquisition records."""

    def __init__(
        self,
        database: "LibraryStore",
        searcher: "ReleaseSearcher",
        importer: "ImportManager",
        clients: "dict[str, DownloadClient]",
        indexers: "list[IndexerBase]",
        scheduler: "AsyncIOScheduler",
        notifier: "Notifier | None" = None,
        stall_hook: StallHook | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            database: Library store holding records and wanted items.
            searcher: Release searcher.
            importer: Import manager receiving completed downloads.
            clients: Download clients keyed by name.
            indexers: Enabled indexers.
            scheduler: Scheduler used to run imports in the background.
            notifier: Optional notifier.
            stall_hook: Coroutine called once when a record becomes stalled.
        """
        self.database = database
        self.searcher = searcher
        self.importer = importer
        self.clients = clients
        self.indexers = indexers
        self.scheduler = scheduler
        self.notifier = notifier
        self.stall_hook = stall_hook
        self._importing: set[int] = set()
        self._write_lock = anyio.Lock()

    # region Settings

    async def build_scoring_settings(self, wanted_id: int | None = None) -> ScoringSettings:
        """Snapshot the blocklist and scoring config for one evaluation run."""
        scoring = config.cfg.scoring
        titles = set()
        groups = {group.lower() for group in scoring.blocked_groups}
        for entry in await self.database.get_blocklist():
            if entry.wanted_id is not None and entry.wanted_id != wanted_id:
                continue
            if entry.release_title:
                titles.add(normalize_release_title(entry.release_title))
            elif entry.release_group:
                groups.add(entry.release_group.lower())
        return ScoringSettings(
            weights=scoring.weights,
            trusted_groups=DEFAULT_TRUSTED_GROUPS
            | {group.lower() for group in scoring.trusted_groups},
            blocked_groups=frozenset(groups),
            blocklisted_titles=frozenset(titles),
        )

    async def _resolve_target(self, item: WantedItem) -> "QualityTarget":
        """Item-level target wins over the library default."""
        quality = config.cfg.quality
        for name in (item.quality_target, quality.default_target):
            if not name:
                continue
            target = await self.database.get_quality_target(name) or quality.get_target(name)
            if target is not None:
                return target
            logger.warning("Unknown quality target %s for %s", name, item.title)
        raise LookupError(f"No usable quality target for {item.title}")

    def _needs_file(self, item: WantedItem, target: "QualityTarget") -> bool:
        current = item.current_file
        if current is None:
            return True
        return target.auto_upgrade and not cutoff_reached(current.tier, target)

    # endregion

    # region Search loop

    async def recover_records(self) -> None:
        """Repair records left mid-flight by a previous run."""
        for record in await self.database.get_records([RecordState.SEARCHING]):
            record.transition(RecordState.PENDING, "Interrupted search")
            await self.database.update_record(record)
        for record in await self.database.get_records([RecordState.IMPORTING]):
            logger.info("Resuming import of record %d", record.id)
            self._handoff(record)

    async def search_pass(self) -> SearchPassStats:
        """Search for every monitored wanted item that is due.

        Returns:
            SearchPassStats: Counts for this pass.
        """
        stats = SearchPassStats()
        now = utcnow()
        limit = config.cfg.search.max_items_per_pass
        for item in await self.database.get_wanted_items():
            if stats.searched >= limit:
                logger.debug("Search pass limit of %d items reached", limit)
                break
            try:
                record = await self._due_record(item, now)
                if record is None:
                    continue
                stats.searched += 1
                if await self._search_record(record, item):
                    stats.grabbed += 1
                else:
                    stats.no_result += 1
            except Exception as e:
                stats.failed += 1
                logger.exception("Search for %s failed: %s", item.title, e)

        if stats.searched:
            logger.info(
                "Search pass: %d searched, %d grabbed, %d without result, %d failed",
                stats.searched,
                stats.grabbed,
                stats.no_result,
                stats.failed,
            )
        return stats

    async def _due_record(self, item: WantedItem, now: datetime) -> AcquisitionRecord | None:
        """Return the pending record to search for ``item`` now, creating one if needed."""
        record = await self.database.get_active_record_for_wanted(item.id)
        if record is None:
            target = await self._resolve_target(item)
            if not self._needs_file(item, target):
                return None
            record = await self._new_record(item)
        if record.state is not RecordState.PENDING:
            return None
        if record.next_search_at is not None and record.next_search_at > now:
            return None
        return record

    async def _new_record(self, item: WantedItem, reason: str = "Wanted") -> AcquisitionRecord:
        record = AcquisitionRecord(
            wanted_id=item.id,
            media_kind=item.media_kind,
            media_id=item.library_item_id,
            title=item.title,
        )
        # Do not hammer a release that just failed
        previous = [
            r for r in await self.database.get_records() if r.wanted_id == item.id
        ]
        if previous:
            last = max(previous, key=lambda r: r.updated_at)
            if last.state is RecordState.FAILED:
                base = timedelta(minutes=config.cfg.search.backoff_base)
                record.next_search_at = last.updated_at + base
        record.events.append(RecordEvent(RecordState.PENDING, RecordState.PENDING, reason))
        return await self.database.create_record(record)

    async def _search_record(self, record: AcquisitionRecord, item: WantedItem) -> bool:
        """Run one search for a pending record; True when something was grabbed."""
        target = await self._resolve_target(item)
        settings = await self.build_scoring_settings(item.id)
        if not await self._start_search(record.id, "Scheduled search"):
            return False

        try:
            ranked = await self.searcher.find_candidates(item, self.indexers, target, settings)
        except Exception:
            await self._back_off(record.id, "Search failed")
            raise

        best = ranked[0] if ranked else None
        current = item.current_file
        if best is not None and current is not None:
            if not should_upgrade(current.score, current.tier, best.score, target):
                logger.debug(
                    "Best release for %s (score %d) is no upgrade over %d",
                    item.title,
                    best.score,
                    current.score,
                )
                best = None

        if best is None:
            await self._back_off(record.id, "No acceptable release found")
            return False
        return await self._grab(record.id, best.result, best.score, best.evaluation.tier)

    async def _start_search(self, record_id: int, reason: str) -> bool:
        """Move a pending record to searching; False if it changed meanwhile."""
        async with self._write_lock:
            record = await self.database.get_record(record_id)
            if record is None or record.state is not RecordState.PENDING:
                logger.debug("Record %d is no longer pending, skipping search", record_id)
                return False
            record.transition(RecordState.SEARCHING, reason)
            await self.database.update_record(record)
        return True

    async def _back_off(self, record_id: int, reason: str) -> None:
        """Return a searching record to pending with exponential backoff."""
        async with self._write_lock:
            record = await self.database.get_record(record_id)
            if record is None or record.state is not RecordState.SEARCHING:
                return
            search = config.cfg.search
            delay = min(search.backoff_base * 2**record.search_attempts, search.backoff_max)
            record.search_attempts += 1
            record.next_search_at = utcnow() + timedelta(minutes=delay)
            record.last_error = reason
            record.transition(RecordState.PENDING, reason)
            await self.database.update_record(record)
        logger.info("%s for %s, retrying in %d minutes", reason, record.title, delay)

    # endregion

    # region Grab

    def _client_for(self, protocol: Protocol) -> "DownloadClient | None":
        for client in self.clients.values():
            if client.protocol is protocol:
                return client
        return None

    async def _grab(
        self,
        record_id: int,
        result: "IndexerResult",
        score: int | None,
        tier: "QualityTier | None",
    ) -> bool:
        """Submit a release for a searching record.

        The record only becomes ``grabbed`` once the client accepted the
        link; any failure sends it back to ``pending``.
        """
        client = self._client_for(result.protocol)
        if client is None:
            await self._back_off(record_id, f"No {result.protocol} download client configured")
            return False

        try:
            with anyio.fail_after(config.cfg.downloader.submit_timeout):
                external_id = await client.submit(result.download_link)
        except TimeoutError:
            await self._back_off(record_id, f"Download client {client.name} timed out")
            return False
        except ClientOperationError as e:
            await self._back_off(record_id, f"Download client {client.name} rejected release: {e}")
            return False
        except Exception as e:
            logger.exception("Submitting %s to %s failed: %s", result.title, client.name, e)
            await self._back_off(record_id, f"Download client {client.name} error: {e}")
            return False

        async with self._write_lock:
            record = await self.database.get_record(record_id)
            if record is None or record.state is not RecordState.SEARCHING:
                logger.warning(
                    "Record %d changed while grabbing, removing %s from %s",
                    record_id,
                    result.title,
                    client.name,
                )
                try:
                    await self._cancel_in_client(client, external_id)
                except Exception as e:
                    logger.error("Could not remove %s from %s: %s", external_id, client.name, e)
                return False

            now = utcnow()
            record.external_id = external_id
            record.client_name = client.name
            record.protocol = result.protocol
            record.release_title = result.title
            record.indexer_name = result.indexer_name
            record.size = result.size
            record.score = score
            record.tier = tier
            record.progress = 0.0
            record.last_error = None
            record.search_attempts = 0
            record.next_search_at = None
            record.grabbed_at = now
            record.last_progress_at = now
            record.transition(RecordState.GRABBED, f"Sent to {client.name}")
            await self.database.update_record(record)

        logger.success(
            "Grabbed %s (%s) for %s via %s",
            result.title,
            format_size(result.size) if result.size else "unknown size",
            record.title,
            client.name,
        )
        if self.notifier is not None:
            await self.notifier.send_grab(record.title, result.title, client.name, result.size)
        return True

    # endregion

    # region Poll loop

    async def poll_client(self, client_name: str) -> PollStats:
        """Refresh every downloading record that lives in ``client_name``.

        A client that errors or times out is skipped for this tick.
        """
        stats = PollStats()
        client = self.clients.get(client_name)
        if client is None:
            logger.error("Unknown download client: %s", client_name)
            return stats

        records = [
            r
            for r in await self.database.get_records(POLLED_STATES)
            if r.client_name == client_name and r.external_id
        ]
        if not records:
            return stats

        statuses: dict[str, DownloadStatus] | None = None
        timeout = config.cfg.downloader.status_timeout
        with anyio.move_on_after(timeout) as cancel_scope:
            try:
                statuses = await client.get_statuses([r.external_id for r in records])
            except Exception as e:
                logger.warning("Polling %s failed: %s", client_name, e)
        if cancel_scope.cancelled_caught:
            logger.warning("Polling %s timed out after %.0fs", client_name, timeout)
        if statuses is None:
            stats.skipped = len(records)
            return stats

        for record in records:
            stats.checked += 1
            await self._apply_status(record.id, statuses.get(record.external_id), stats)
        return stats

    async def _apply_status(
        self, record_id: int, status: DownloadStatus | None, stats: PollStats
    ) -> None:
        """Fold one client status into a record.

        Writes only when something changed, so polling an unchanged
        download twice has no effect.
        """
        entered_stall = False
        handoff = None
        failure = None
        async with self._write_lock:
            record = await self.database.get_record(record_id)
            if record is None or record.state not in POLLED_STATES:
                return
            now = utcnow()

            if status is None:
                failure = "Download disappeared from client"
            elif status.state is ClientState.ERROR:
                failure = f"Download client error: {status.error or 'unknown'}"

            if failure is not None:
                record.last_error = failure
                record.transition(RecordState.FAILED, failure)
                await self.database.update_record(record)
                stats.failed += 1
                logger.error("Record %d (%s): %s", record.id, record.release_title, failure)
            elif status.is_complete:
                record.progress = 100.0
                record.download_path = status.download_path or record.download_path
                record.last_progress_at = now
                record.transition(RecordState.IMPORTING, "Download complete")
                await self.database.update_record(record)
                stats.completed += 1
                handoff = record
            else:
                changed = False
                progress = round(status.progress, 2)
                if progress != record.progress:
                    if progress > record.progress:
                        record.last_progress_at = now
                    record.progress = progress
                    changed = True
                if status.download_path and status.download_path != record.download_path:
                    record.download_path = status.download_path
                    changed = True

                new_state = self._next_state(record, status, changed, now)
                if new_state is not record.state:
                    record.transition(new_state, f"Client reports {status.state}")
                    entered_stall = new_state is RecordState.STALLED
                    changed = True
                if changed:
                    await self.database.update_record(record)
                    stats.updated += 1

        if failure is not None and self.notifier is not None:
            await self.notifier.send_download_failure(record.release_title or record.title, failure)
        if handoff is not None:
            self._handoff(handoff)
        if entered_stall:
            await self._on_stall(record)

    def _next_state(
        self,
        record: AcquisitionRecord,
        status: DownloadStatus,
        progressed: bool,
        now: datetime,
    ) -> RecordState:
        if status.state is ClientState.PAUSED:
            return RecordState.PAUSED
        if status.state in (ClientState.DOWNLOADING, ClientState.METADATA_DOWNLOADING):
            stalled_window = timedelta(minutes=config.cfg.downloader.stalled_window)
            last = record.last_progress_at or record.grabbed_at or record.created_at
            if not progressed and now - last >= stalled_window:
                return RecordState.STALLED
            if record.state is RecordState.STALLED and not progressed:
                return RecordState.STALLED
            return RecordState.DOWNLOADING
        if record.state is RecordState.PAUSED:
            return RecordState.DOWNLOADING
        # Queued, checking and moving keep the current state
        return record.state

    async def _on_stall(self, record: AcquisitionRecord) -> None:
        logger.warning(
            "Record %d (%s) stalled at %.1f%%", record.id, record.release_title, record.progress
        )
        if self.stall_hook is None:
            return
        try:
            await self.stall_hook(record)
        except Exception as e:
            logger.exception("Stall hook failed for record %d: %s", record.id, e)

    # endregion

    # region Import handoff

    def _handoff(self, record: AcquisitionRecord) -> bool:
        """Schedule the import of ``record`` unless one is already in flight.

        Returns:
            bool: True if an import job was scheduled.
        """
        if record.id in self._importing:
            logger.debug("Import of record %d already in flight", record.id)
            return False
        self._importing.add(record.id)
        self.scheduler.add_job(
            self._run_import,
            trigger=DateTrigger(),
            args=[record.id],
            id=f"import_{record.id}",
            misfire_grace_time=None,
            replace_existing=True,
            max_instances=1,
        )
        return True

    async def _run_import(self, record_id: int) -> None:
        try:
            record = await self.database.get_record(record_id)
            if record is None:
                return
            outcome = await self.importer.import_record(record)
            logger.debug("Import of record %d finished: %s", record_id, outcome.status)
        except Exception as e:
            logger.exception("Import of record %d crashed: %s", record_id, e)
            await self._mark_import_crashed(record_id, str(e))
        finally:
            self._importing.discard(record_id)

    async def _mark_import_crashed(self, record_id: int, error: str) -> None:
        record = await self.database.get_record(record_id)
        if record is not None and record.state is RecordState.IMPORTING:
            record.last_error = error
            record.transition(RecordState.FAILED, "Import crashed")
            await self.database.update_record(record)

    # endregion

    # region Commands

    async def search_now(self, wanted_id: int) -> CommandResponse:
        """Search immediately for a wanted item, ignoring its backoff."""
        item = await self.database.get_wanted_item(wanted_id)
        if item is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Wanted item {wanted_id} not found"
            )
        record = await self.database.get_active_record_for_wanted(wanted_id)
        if record is None:
            record = await self._new_record(item, "Manual search")
        if record.state is not RecordState.PENDING:
            return CommandResponse(
                status=CommandStatus.CONFLICT,
                message=f"Record {record.id} is already {record.state}",
                record_id=record.id,
            )
        record.next_search_at = None
        try:
            grabbed = await self._search_record(record, item)
        except Exception as e:
            logger.exception("Manual search for %s failed: %s", item.title, e)
            return CommandResponse(
                status=CommandStatus.ERROR, message=f"Search failed: {e}", record_id=record.id
            )
        if grabbed:
            message = f"Grabbed a release for {item.title}"
        else:
            message = f"No acceptable release found for {item.title}"
        return CommandResponse(status=CommandStatus.SUCCESS, message=message, record_id=record.id)

    async def search_releases(self, wanted_id: int) -> "list[ScoredCandidate]":
        """Interactive search: return accepted releases, best first."""
        item = await self.database.get_wanted_item(wanted_id)
        if item is None:
            return []
        target = await self._resolve_target(item)
        settings = await self.build_scoring_settings(wanted_id)
        return await self.searcher.find_candidates(item, self.indexers, target, settings)

    async def grab_result(self, wanted_id: int, result: "IndexerResult") -> CommandResponse:
        """Grab a specific search result chosen by the user."""
        item = await self.database.get_wanted_item(wanted_id)
        if item is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Wanted item {wanted_id} not found"
            )
        record = await self.database.get_active_record_for_wanted(wanted_id)
        if record is None:
            record = await self._new_record(item, "Manual grab")
        if record.state is not RecordState.PENDING:
            return CommandResponse(
                status=CommandStatus.CONFLICT,
                message=f"Record {record.id} is already {record.state}",
                record_id=record.id,
            )

        release = parse(result.title)
        target = await self._resolve_target(item)
        evaluation = evaluate(
            release, target, await self.build_scoring_settings(wanted_id), seeders=result.seeders
        )
        if not evaluation.accepted:
            logger.warning("Manual grab of %s overrides rejection: %s", result.title, evaluation.reason)

        if not await self._start_search(record.id, "Manual grab"):
            return CommandResponse(
                status=CommandStatus.CONFLICT,
                message=f"Record {record.id} changed state before the grab",
                record_id=record.id,
            )
        tier = evaluation.tier if evaluation.accepted else compute_quality_tier(release)
        if await self._grab(record.id, result, evaluation.score, tier):
            return CommandResponse(
                status=CommandStatus.SUCCESS, message=f"Grabbed {result.title}", record_id=record.id
            )
        refreshed = await self.database.get_record(record.id)
        return CommandResponse(
            status=CommandStatus.ERROR,
            message=(refreshed.last_error if refreshed else None) or "Grab failed",
            record_id=record.id,
        )

    async def _cancel_in_client(self, client: "DownloadClient", external_id: str) -> None:
        with anyio.fail_after(config.cfg.downloader.submit_timeout):
            await client.cancel(external_id, delete_files=True)

    async def _stop_download(self, record: AcquisitionRecord) -> str | None:
        """Tell the client to drop a record's download; returns an error message on failure."""
        if not record.state.is_downloading or not record.external_id:
            return None
        client = self.clients.get(record.client_name or "")
        if client is None:
            return f"Download client {record.client_name} is not configured"
        try:
            await self._cancel_in_client(client, record.external_id)
        except TimeoutError:
            return f"Download client {client.name} timed out"
        except Exception as e:
            return f"Download client {client.name} failed to cancel: {e}"
        return None

    def _check_command(
        self, record: AcquisitionRecord, action: str, target: RecordState | None = None
    ) -> None:
        """Raise if ``action`` cannot run on ``record`` right now.

        Raises:
            OperationNotAllowedError: While the record imports, or when
                ``target`` is not reachable from its current state.
        """
        if record.state is RecordState.IMPORTING or record.id in self._importing:
            raise OperationNotAllowedError(
                f"Record {record.id} is importing and cannot be {action}", busy=True
            )
        if target is not None and not record.can_transition(target):
            raise OperationNotAllowedError(
                f"Record {record.id} is {record.state} and cannot be {action}"
            )

    @staticmethod
    def _not_allowed(record_id: int, error: OperationNotAllowedError) -> CommandResponse:
        return CommandResponse(
            status=CommandStatus.CONFLICT if error.busy else CommandStatus.INVALID,
            message=str(error),
            record_id=record_id,
        )

    async def cancel_record(self, record_id: int) -> CommandResponse:
        """Stop a record's download and mark it cancelled.

        Not allowed while the record is importing.
        """
        record = await self.database.get_record(record_id)
        if record is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Record {record_id} not found"
            )
        try:
            self._check_command(record, "cancelled", RecordState.CANCELLED)
        except OperationNotAllowedError as e:
            return self._not_allowed(record_id, e)

        if error := await self._stop_download(record):
            logger.error("Cancel of record %d failed: %s", record_id, error)
            return CommandResponse(status=CommandStatus.ERROR, message=error, record_id=record_id)

        async with self._write_lock:
            record = await self.database.get_record(record_id)
            if record is None or not record.can_transition(RecordState.CANCELLED):
                return CommandResponse(
                    status=CommandStatus.CONFLICT,
                    message=f"Record {record_id} changed state while cancelling",
                    record_id=record_id,
                )
            record.transition(RecordState.CANCELLED, "Cancelled by user")
            await self.database.update_record(record)
        logger.info("Cancelled record %d (%s)", record_id, record.title)
        return CommandResponse(
            status=CommandStatus.SUCCESS, message=f"Cancelled record {record_id}", record_id=record_id
        )

    async def remove_record(self, record_id: int) -> CommandResponse:
        """Delete a record, dropping its download from the client first."""
        record = await self.database.get_record(record_id)
        if record is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Record {record_id} not found"
            )
        try:
            self._check_command(record, "removed")
        except OperationNotAllowedError as e:
            return self._not_allowed(record_id, e)
        if error := await self._stop_download(record):
            logger.warning("Removing record %d anyway: %s", record_id, error)
        async with self._write_lock:
            await self.database.delete_record(record_id)
        logger.info("Removed record %d (%s)", record_id, record.title)
        return CommandResponse(
            status=CommandStatus.SUCCESS, message=f"Removed record {record_id}", record_id=record_id
        )

    async def reject_record(self, record_id: int, reason: str = "Rejected by user") -> CommandResponse:
        """Blocklist a record's release and queue a search for a replacement."""
        record = await self.database.get_record(record_id)
        if record is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Record {record_id} not found"
            )
        try:
            self._check_command(record, "rejected")
            if not record.release_title:
                raise OperationNotAllowedError(f"Record {record_id} has no release to reject")
        except OperationNotAllowedError as e:
            return self._not_allowed(record_id, e)

        await self.database.add_blocklist_entry(
            BlocklistEntry(
                release_title=record.release_title,
                release_group=parse(record.release_title).release_group or "",
                reason=reason,
                wanted_id=record.wanted_id,
            )
        )
        logger.info("Blocklisted %s: %s", record.release_title, reason)

        if record.state.is_active:
            response = await self.cancel_record(record_id)
            if response.status is not CommandStatus.SUCCESS:
                return response

        item = await self.database.get_wanted_item(record.wanted_id)
        new_record = None
        if item is not None and item.monitored:
            if await self.database.get_active_record_for_wanted(item.id) is None:
                new_record = await self._new_record(item, "Replacing rejected release")
        return CommandResponse(
            status=CommandStatus.SUCCESS,
            message=f"Blocklisted {record.release_title}",
            record_id=new_record.id if new_record else record_id,
        )

    async def retry_import(self, record_id: int) -> CommandResponse:
        """Re-run a failed import."""
        record = await self.database.get_record(record_id)
        if record is None:
            return CommandResponse(
                status=CommandStatus.NOT_FOUND, message=f"Record {record_id} not found"
            )
        try:
            self._check_command(record, "retried")
            if record.state is not RecordState.FAILED or not record.download_path:
                raise OperationNotAllowedError(f"Record {record_id} has no failed import to retry")
        except OperationNotAllowedError as e:
            return self._not_allowed(record_id, e)
        other = await self.database.get_active_record_for_wanted(record.wanted_id)
        if other is not None:
            return CommandResponse(
                status=CommandStatus.CONFLICT,
                message=f"Record {other.id} is already active for this item",
                record_id=record_id,
            )

        async with self._write_lock:
            record.transition(RecordState.IMPORTING, "Import retried")
            await self.database.update_record(record)
        self._handoff(record)
        return CommandResponse(
            status=CommandStatus.SUCCESS,
            message=f"Retrying import of record {record_id}",
            record_id=record_id,
        )

    # endregion

    # region Queries

    async def get_records(
        self, states: Iterable[RecordState] | None = None
    ) -> list[AcquisitionRecord]:
        return await self.database.get_records(states)

    async def get_record(self, record_id: int) -> AcquisitionRecord | None:
        return await self.database.get_record(record_id)

    async def get_history(
        self, record_id: int | None = None, limit: int = 100
    ) -> "list[ImportHistoryEntry]":
        return await self.database.get_history(record_id, limit)

    async def get_blocklist(self) -> list[BlocklistEntry]:
        return await self.database.get_blocklist()

    async def remove_blocklist_entry(self, entry_id: int) -> CommandResponse:
        if await self.database.remove_blocklist_entry(entry_id):
            return CommandResponse(
                status=CommandStatus.SUCCESS, message=f"Removed blocklist entry {entry_id}"
            )
        return CommandResponse(
            status=CommandStatus.NOT_FOUND, message=f"Blocklist entry {entry_id} not found"
        )

    # endregion
