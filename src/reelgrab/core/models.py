"""Data models for reelgrab acquisition and import."""

from datetime import UTC, date, datetime
from enum import StrEnum

import msgspec
from pydantic import BaseModel, Field

from ..indexers import MediaKind, Protocol, SearchQuery
from ..quality import QualityTier


def utcnow() -> datetime:
    return datetime.now(UTC)


class RecordState(StrEnum):
    """Lifecycle state of an acquisition record."""

    PENDING = "pending"
    SEARCHING = "searching"
    GRABBED = "grabbed"
    DOWNLOADING = "downloading"
    PAUSED = "paused"
    STALLED = "stalled"
    IMPORTING = "importing"
    IMPORTED = "imported"
    FAILED = "failed"
    UNMATCHED = "unmatched"
    CANCELLED = "cancelled"

    @property
    def is_active(self) -> bool:
        """Active records block a new grab for the same wanted item."""
        return self not in INACTIVE_STATES

    @property
    def is_downloading(self) -> bool:
        return self in POLLED_STATES


INACTIVE_STATES = frozenset(
    {RecordState.IMPORTED, RecordState.FAILED, RecordState.UNMATCHED, RecordState.CANCELLED}
)

POLLED_STATES = frozenset(
    {RecordState.GRABBED, RecordState.DOWNLOADING, RecordState.PAUSED, RecordState.STALLED}
)

ALLOWED_TRANSITIONS: dict[RecordState, frozenset[RecordState]] = {
    RecordState.PENDING: frozenset({RecordState.SEARCHING, RecordState.CANCELLED}),
    RecordState.SEARCHING: frozenset(
        {RecordState.PENDING, RecordState.GRABBED, RecordState.CANCELLED}
    ),
    RecordState.GRABBED: frozenset(
        {
            RecordState.DOWNLOADING,
            RecordState.PAUSED,
            RecordState.STALLED,
            RecordState.IMPORTING,
            RecordState.FAILED,
            RecordState.CANCELLED,
        }
    ),
    RecordState.DOWNLOADING: frozenset(
        {
            RecordState.PAUSED,
            RecordState.STALLED,
            RecordState.IMPORTING,
            RecordState.FAILED,
            RecordState.CANCELLED,
        }
    ),
    RecordState.PAUSED: frozenset(
        {
            RecordState.DOWNLOADING,
            RecordState.STALLED,
            RecordState.IMPORTING,
            RecordState.FAILED,
            RecordState.CANCELLED,
        }
    ),
    RecordState.STALLED: frozenset(
        {
            RecordState.DOWNLOADING,
            RecordState.PAUSED,
            RecordState.IMPORTING,
            RecordState.FAILED,
            RecordState.CANCELLED,
        }
    ),
    RecordState.IMPORTING: frozenset(
        {RecordState.IMPORTED, RecordState.FAILED, RecordState.UNMATCHED}
    ),
    RecordState.FAILED: frozenset({RecordState.IMPORTING}),
    RecordState.IMPORTED: frozenset(),
    RecordState.UNMATCHED: frozenset(),
    RecordState.CANCELLED: frozenset(),
}


class InvalidTransitionError(Exception):
    """Raised when a record is moved along an edge the state machine forbids."""


class OperationNotAllowedError(Exception):
    """Raised when a command is not valid for a record's current state.

    ``busy`` marks a state that will pass, such as an import in flight.
    """

    def __init__(self, message: str, busy: bool = False) -> None:
        super().__init__(message)
        self.busy = busy


class RecordConflictError(Exception):
    """Raised when a wanted item would get a second active record."""


class RecordEvent(msgspec.Struct, frozen=True):
    """One state change in a record's history."""

    from_state: RecordState
    to_state: RecordState
    reason: str = ""
    timestamp: datetime = msgspec.field(default_factory=utcnow)


class AcquisitionRecord(msgspec.Struct, kw_only=True):
    """Durable unit tracked from search to import.

    The orchestrator writes lifecycle and progress fields; the import
    manager writes ``import_path``, ``last_error`` and the final state.
    """

    id: int = 0
    wanted_id: int
    media_kind: MediaKind = MediaKind.MOVIE
    media_id: int | None = None
    title: str = ""
    state: RecordState = RecordState.PENDING

    external_id: str | None = None
    client_name: str | None = None
    protocol: Protocol | None = None
    release_title: str | None = None
    indexer_name: str | None = None
    size: int = 0
    score: int | None = None
    tier: QualityTier | None = None

    progress: float = 0.0
    download_path: str | None = None
    import_path: str | None = None
    last_error: str | None = None

    search_attempts: int = 0
    next_search_at: datetime | None = None
    last_progress_at: datetime | None = None
    created_at: datetime = msgspec.field(default_factory=utcnow)
    updated_at: datetime = msgspec.field(default_factory=utcnow)
    grabbed_at: datetime | None = None
    completed_at: datetime | None = None
    events: list[RecordEvent] = msgspec.field(default_factory=list)

    def can_transition(self, new_state: RecordState) -> bool:
        return new_state in ALLOWED_TRANSITIONS[self.state]

    def transition(self, new_state: RecordState, reason: str = "") -> None:
        """Move the record to ``new_state`` and remember the change.

        Raises:
            InvalidTransitionError: If the edge is not allowed.
        """
        if not self.can_transition(new_state):
            raise InvalidTransitionError(
                f"Record {self.id}: cannot go from {self.state} to {new_state}"
            )
        self.events.append(RecordEvent(self.state, new_state, reason))
        self.state = new_state
        self.updated_at = utcnow()


class BlocklistEntry(msgspec.Struct, kw_only=True):
    """A release (or whole group) never to be selected again."""

    id: int = 0
    release_title: str = ""
    release_group: str = ""
    reason: str = ""
    wanted_id: int | None = None
    created_at: datetime = msgspec.field(default_factory=utcnow)
    expires_at: datetime | None = None

    def is_active(self, now: datetime | None = None) -> bool:
        return self.expires_at is None or self.expires_at > (now or utcnow())


class CurrentFile(msgspec.Struct, frozen=True):
    """The file a wanted item already has in the library."""

    score: int
    tier: QualityTier
    path: str = ""


class WantedItem(msgspec.Struct, kw_only=True):
    """A title the user wants acquired (or upgraded).

    Attributes:
        quality_target: Item-level target name, overriding the library default.
        excluded_indexers: Indexer names never searched for this item.
        current_file: Existing library file, for upgrade decisions.
    """

    id: int = 0
    media_kind: MediaKind = MediaKind.MOVIE
    title: str
    year: int | None = None
    season: int | None = None
    episode: int | None = None
    library_item_id: int | None = None
    quality_target: str | None = None
    excluded_indexers: tuple[str, ...] = ()
    current_file: CurrentFile | None = None
    monitored: bool = True

    @property
    def search_query(self) -> SearchQuery:
        terms = self.title
        if self.media_kind is MediaKind.MOVIE and self.year:
            terms = f"{terms} {self.year}"
        elif self.media_kind is MediaKind.EPISODE and self.season is not None:
            terms = f"{terms} S{self.season:02d}"
            if self.episode is not None:
                terms = f"{terms}E{self.episode:02d}"
        elif self.media_kind is MediaKind.SEASON and self.season is not None:
            terms = f"{terms} S{self.season:02d}"
        return SearchQuery(
            query=terms,
            media_kind=self.media_kind,
            season=self.season,
            episode=self.episode,
            year=self.year,
        )


class LibraryItem(msgspec.Struct, kw_only=True):
    """A movie or series known to the library."""

    id: int = 0
    media_kind: MediaKind = MediaKind.MOVIE
    title: str
    year: int | None = None
    root_folder: str | None = None
    path: str | None = None


class EpisodeInfo(msgspec.Struct, frozen=True, kw_only=True):
    season: int
    episode: int
    title: str = ""
    air_date: date | None = None


class ImportStatus(StrEnum):
    IMPORTED = "imported"
    FAILED = "failed"
    UNMATCHED = "unmatched"
    SKIPPED = "skipped"


class ImportOutcome(msgspec.Struct, frozen=True, kw_only=True):
    """Result of one import attempt."""

    status: ImportStatus
    destination: str | None = None
    moved: tuple[str, ...] = ()
    error: str | None = None


class ImportHistoryEntry(msgspec.Struct, kw_only=True):
    id: int = 0
    record_id: int
    status: ImportStatus
    release_title: str = ""
    source_path: str = ""
    destination_path: str | None = None
    files: list[str] = msgspec.field(default_factory=list)
    error: str | None = None
    created_at: datetime = msgspec.field(default_factory=utcnow)


class SearchPassStats(msgspec.Struct):
    """Statistics for one pass of the search loop."""

    searched: int = 0
    grabbed: int = 0
    no_result: int = 0
    failed: int = 0


class PollStats(msgspec.Struct):
    """Statistics for one poll of a download client."""

    checked: int = 0
    updated: int = 0
    completed: int = 0
    failed: int = 0
    skipped: int = 0


class CommandStatus(StrEnum):
    """Status enumeration for command responses."""

    SUCCESS = "success"
    NOT_FOUND = "not_found"
    CONFLICT = "conflict"
    INVALID = "invalid"
    ERROR = "error"


class CommandResponse(BaseModel):
    """Response model for commands issued against the orchestrator."""

    status: CommandStatus = Field(..., description="Command status")
    message: str = Field(..., description="Status message")
    record_id: int | None = Field(default=None, description="Affected record id")

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "status": "success",
                    "message": "Cancelled record 12",
                    "record_id": 12,
                },
                {
                    "status": "conflict",
                    "message": "Record 12 is importing and cannot be cancelled",
                    "record_id": 12,
                },
            ]
        }
    }
