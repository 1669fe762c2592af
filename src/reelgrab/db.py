"""Library store for reelgrab.

The store holds wanted items, acquisition records, the blocklist,
naming templates, quality targets, library items and import history.
``LibraryStore`` is the contract the core relies on; ``MemoryLibraryStore``
is the bundled implementation, guarded by an ``anyio.Lock`` and handing out
copies so callers can never mutate stored state behind the store's back.
"""

import copy
from abc import ABC, abstractmethod
from collections.abc import Iterable
from datetime import datetime

import anyio

from . import logger
from .config import ConfigError, NamingConfig, validate_target
from .core.models import (
    AcquisitionRecord,
    BlocklistEntry,
    EpisodeInfo,
    ImportHistoryEntry,
    LibraryItem,
    RecordConflictError,
    RecordState,
    WantedItem,
    utcnow,
)
from .naming import TemplateError, validate_template
from .quality import QualityTarget, normalize_release_title


class LibraryStore(ABC):
    """Persistence contract used by the orchestrator and import manager."""

    # region Wanted items

    @abstractmethod
    async def add_wanted_item(self, item: WantedItem) -> WantedItem:
        """Store a new wanted item and return it with its id assigned."""

    @abstractmethod
    async def get_wanted_item(self, wanted_id: int) -> WantedItem | None: ...

    @abstractmethod
    async def get_wanted_items(self, monitored_only: bool = True) -> list[WantedItem]: ...

    @abstractmethod
    async def update_wanted_item(self, item: WantedItem) -> None: ...

    @abstractmethod
    async def delete_wanted_item(self, wanted_id: int) -> None: ...

    # endregion

    # region Acquisition records

    @abstractmethod
    async def create_record(self, record: AcquisitionRecord) -> AcquisitionRecord:
        """Store a new record and return it with its id assigned.

        Raises:
            RecordConflictError: If the wanted item already has an active record.
        """

    @abstractmethod
    async def update_record(self, record: AcquisitionRecord) -> None:
        """Replace the stored snapshot of ``record``.

        Raises:
            KeyError: If the record does not exist.
        """

    @abstractmethod
    async def get_record(self, record_id: int) -> AcquisitionRecord | None: ...

    @abstractmethod
    async def get_records(
        self, states: Iterable[RecordState] | None = None
    ) -> list[AcquisitionRecord]: ...

    @abstractmethod
    async def get_active_record_for_wanted(self, wanted_id: int) -> AcquisitionRecord | None:
        """Return the single non-terminal record of a wanted item, if any."""

    @abstractmethod
    async def delete_record(self, record_id: int) -> bool: ...

    # endregion

    # region Blocklist

    @abstractmethod
    async def add_blocklist_entry(self, entry: BlocklistEntry) -> BlocklistEntry: ...

    @abstractmethod
    async def get_blocklist(self, active_only: bool = True) -> list[BlocklistEntry]: ...

    @abstractmethod
    async def remove_blocklist_entry(self, entry_id: int) -> bool: ...

    # endregion

    # region Naming templates and quality targets

    @abstractmethod
    async def get_naming_templates(self) -> NamingConfig: ...

    @abstractmethod
    async def save_naming_templates(self, naming: NamingConfig) -> None:
        """Store naming templates.

        Raises:
            ConfigError: If any template is malformed.
        """

    @abstractmethod
    async def get_quality_target(self, name: str) -> QualityTarget | None: ...

    @abstractmethod
    async def get_quality_targets(self) -> dict[str, QualityTarget]: ...

    @abstractmethod
    async def save_quality_target(self, target: QualityTarget) -> None:
        """Store a quality target under its name.

        Raises:
            ConfigError: If the target is invalid.
        """

    # endregion

    # region Library items

    @abstractmethod
    async def add_library_item(
        self, item: LibraryItem, episodes: Iterable[EpisodeInfo] = ()
    ) -> LibraryItem: ...

    @abstractmethod
    async def get_library_item(self, item_id: int) -> LibraryItem | None: ...

    @abstractmethod
    async def find_library_item(
        self,
        title: str,
        year: int | None = None,
        season: int | None = None,
        episode: int | None = None,
    ) -> LibraryItem | None:
        """Look up an existing library item by title, year and episode."""

    @abstractmethod
    async def get_episode(
        self, item_id: int, season: int, episode: int
    ) -> EpisodeInfo | None: ...

    # endregion

    # region History and job bookkeeping

    @abstractmethod
    async def add_history_entry(self, entry: ImportHistoryEntry) -> ImportHistoryEntry: ...

    @abstractmethod
    async def get_history(
        self, record_id: int | None = None, limit: int = 100
    ) -> list[ImportHistoryEntry]: ...

    @abstractmethod
    async def update_job_run(self, job_name: str, last_run: datetime) -> None: ...

    @abstractmethod
    async def get_job_last_run(self, job_name: str) -> datetime | None: ...

    # endregion

    async def close(self) -> None:
        """Release store resources."""


def _title_key(title: str) -> str:
    return normalize_release_title(title).replace("'", "")


class MemoryLibraryStore(LibraryStore):
    """In-process store backed by dictionaries."""

    def __init__(self) -> None:
        self._lock = anyio.Lock()
        self._ids: dict[str, int] = {}
        self._wanted: dict[int, WantedItem] = {}
        self._records: dict[int, AcquisitionRecord] = {}
        self._blocklist: dict[int, BlocklistEntry] = {}
        self._naming = NamingConfig()
        self._targets: dict[str, QualityTarget] = {}
        self._library: dict[int, LibraryItem] = {}
        self._episodes: dict[tuple[int, int, int], EpisodeInfo] = {}
        self._history: list[ImportHistoryEntry] = []
        self._job_runs: dict[str, datetime] = {}

    def _next_id(self, table: str) -> int:
        self._ids[table] = self._ids.get(table, 0) + 1
        return self._ids[table]

    # region Wanted items

    async def add_wanted_item(self, item: WantedItem) -> WantedItem:
        async with self._lock:
            stored = copy.deepcopy(item)
            stored.id = self._next_id("wanted")
            self._wanted[stored.id] = stored
            return copy.deepcopy(stored)

    async def get_wanted_item(self, wanted_id: int) -> WantedItem | None:
        async with self._lock:
            return copy.deepcopy(self._wanted.get(wanted_id))

    async def get_wanted_items(self, monitored_only: bool = True) -> list[WantedItem]:
        async with self._lock:
            return [
                copy.deepcopy(item)
                for item in self._wanted.values()
                if item.monitored or not monitored_only
            ]

    async def update_wanted_item(self, item: WantedItem) -> None:
        async with self._lock:
            if item.id not in self._wanted:
                raise KeyError(f"Wanted item {item.id} does not exist")
            self._wanted[item.id] = copy.deepcopy(item)

    async def delete_wanted_item(self, wanted_id: int) -> None:
        async with self._lock:
            self._wanted.pop(wanted_id, None)

    # endregion

    # region Acquisition records

    def _active_for(self, wanted_id: int, exclude: int | None = None) -> AcquisitionRecord | None:
        for record in self._records.values():
            if record.wanted_id == wanted_id and record.state.is_active and record.id != exclude:
                return record
        return None

    async def create_record(self, record: AcquisitionRecord) -> AcquisitionRecord:
        async with self._lock:
            if record.state.is_active and self._active_for(record.wanted_id):
                raise RecordConflictError(
                    f"Wanted item {record.wanted_id} already has an active record"
                )
            stored = copy.deepcopy(record)
            stored.id = self._next_id("records")
            self._records[stored.id] = stored
            logger.debug("Created record %d for wanted item %d", stored.id, stored.wanted_id)
            return copy.deepcopy(stored)

    async def update_record(self, record: AcquisitionRecord) -> None:
        async with self._lock:
            if record.id not in self._records:
                raise KeyError(f"Record {record.id} does not exist")
            if record.state.is_active and self._active_for(record.wanted_id, exclude=record.id):
                raise RecordConflictError(
                    f"Wanted item {record.wanted_id} already has an active record"
                )
            self._records[record.id] = copy.deepcopy(record)

    async def get_record(self, record_id: int) -> AcquisitionRecord | None:
        async with self._lock:
            return copy.deepcopy(self._records.get(record_id))

    async def get_records(
        self, states: Iterable[RecordState] | None = None
    ) -> list[AcquisitionRecord]:
        wanted_states = set(states) if states is not None else None
        async with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._records.values()
                if wanted_states is None or record.state in wanted_states
            ]

    async def get_active_record_for_wanted(self, wanted_id: int) -> AcquisitionRecord | None:
        async with self._lock:
            return copy.deepcopy(self._active_for(wanted_id))

    async def delete_record(self, record_id: int) -> bool:
        async with self._lock:
            return self._records.pop(record_id, None) is not None

    # endregion

    # region Blocklist

    async def add_blocklist_entry(self, entry: BlocklistEntry) -> BlocklistEntry:
        async with self._lock:
            stored = copy.deepcopy(entry)
            stored.id = self._next_id("blocklist")
            self._blocklist[stored.id] = stored
            return copy.deepcopy(stored)

    async def get_blocklist(self, active_only: bool = True) -> list[BlocklistEntry]:
        now = utcnow()
        async with self._lock:
            return [
                copy.deepcopy(entry)
                for entry in self._blocklist.values()
                if not active_only or entry.is_active(now)
            ]

    async def remove_blocklist_entry(self, entry_id: int) -> bool:
        async with self._lock:
            return self._blocklist.pop(entry_id, None) is not None

    # endregion

    # region Naming templates and quality targets

    async def get_naming_templates(self) -> NamingConfig:
        async with self._lock:
            return copy.deepcopy(self._naming)

    async def save_naming_templates(self, naming: NamingConfig) -> None:
        # NamingConfig validates on construction, but the fields are mutable
        for field in naming.__struct_fields__:
            try:
                validate_template(getattr(naming, field))
            except TemplateError as e:
                raise ConfigError(f"Invalid naming template '{field}': {e}") from e
        async with self._lock:
            self._naming = copy.deepcopy(naming)

    async def get_quality_target(self, name: str) -> QualityTarget | None:
        async with self._lock:
            return self._targets.get(name)

    async def get_quality_targets(self) -> dict[str, QualityTarget]:
        async with self._lock:
            return dict(self._targets)

    async def save_quality_target(self, target: QualityTarget) -> None:
        validate_target(target.name, target)
        async with self._lock:
            self._targets[target.name] = target

    # endregion

    # region Library items

    async def add_library_item(
        self, item: LibraryItem, episodes: Iterable[EpisodeInfo] = ()
    ) -> LibraryItem:
        async with self._lock:
            stored = copy.deepcopy(item)
            stored.id = self._next_id("library")
            self._library[stored.id] = stored
            for info in episodes:
                self._episodes[(stored.id, info.season, info.episode)] = info
            return copy.deepcopy(stored)

    async def get_library_item(self, item_id: int) -> LibraryItem | None:
        async with self._lock:
            return copy.deepcopy(self._library.get(item_id))

    async def find_library_item(
        self,
        title: str,
        year: int | None = None,
        season: int | None = None,
        episode: int | None = None,
    ) -> LibraryItem | None:
        key = _title_key(title)
        if not key:
            return None
        async with self._lock:
            matches = [item for item in self._library.values() if _title_key(item.title) == key]
            if year is not None:
                dated = [item for item in matches if item.year in (None, year)]
                # A year mismatch only disqualifies when some candidate agrees
                matches = dated or [item for item in matches if item.year is None]
            if season is not None and episode is not None:
                matches = [
                    item
                    for item in matches
                    if (item.id, season, episode) in self._episodes
                    or not any(k[0] == item.id for k in self._episodes)
                ]
            # Ambiguous lookups are not confident matches
            if len(matches) != 1:
                return None
            return copy.deepcopy(matches[0])

    async def get_episode(self, item_id: int, season: int, episode: int) -> EpisodeInfo | None:
        async with self._lock:
            return self._episodes.get((item_id, season, episode))

    # endregion

    # region History and job bookkeeping

    async def add_history_entry(self, entry: ImportHistoryEntry) -> ImportHistoryEntry:
        async with self._lock:
            stored = copy.deepcopy(entry)
            stored.id = self._next_id("history")
            self._history.append(stored)
            return copy.deepcopy(stored)

    async def get_history(
        self, record_id: int | None = None, limit: int = 100
    ) -> list[ImportHistoryEntry]:
        async with self._lock:
            entries = [
                entry
                for entry in reversed(self._history)
                if record_id is None or entry.record_id == record_id
            ]
            return copy.deepcopy(entries[:limit])

    async def update_job_run(self, job_name: str, last_run: datetime) -> None:
        async with self._lock:
            self._job_runs[job_name] = last_run

    async def get_job_last_run(self, job_name: str) -> datetime | None:
        async with self._lock:
            return self._job_runs.get(job_name)

    # endregion


# Global database instance
_database_instance: LibraryStore | None = None
_database_lock = anyio.Lock()


async def init_database(store: LibraryStore | None = None) -> None:
    """Initialize global library store instance.

    Should be called once during application startup.

    Args:
        store: Store to install, an in-memory store by default.

    Raises:
        RuntimeError: If already initialized.
    """
    global _database_instance
    async with _database_lock:
        if _database_instance is not None:
            raise RuntimeError("Database already initialized.")
        _database_instance = store or MemoryLibraryStore()


def get_database() -> LibraryStore:
    """Get global library store instance.

    Raises:
        RuntimeError: If the store has not been initialized.
    """
    if _database_instance is None:
        raise RuntimeError("Database not initialized. Call init_database() first.")
    return _database_instance


async def cleanup_database() -> None:
    global _database_instance
    async with _database_lock:
        if _database_instance is not None:
            await _database_instance.close()
            _database_instance = None
