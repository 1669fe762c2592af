"""Core acquisition package for reelgrab."""

from .importer import ImportManager
from .models import (
    AcquisitionRecord,
    BlocklistEntry,
    CommandResponse,
    CommandStatus,
    CurrentFile,
    EpisodeInfo,
    ImportHistoryEntry,
    ImportOutcome,
    ImportStatus,
    InvalidTransitionError,
    LibraryItem,
    OperationNotAllowedError,
    PollStats,
    RecordConflictError,
    RecordState,
    SearchPassStats,
    WantedItem,
)
from .orchestrator import AcquisitionOrchestrator
from .registry import get_core, init_core
from .searcher import ReleaseSearcher

__all__ = [
    "AcquisitionOrchestrator",
    "AcquisitionRecord",
    "BlocklistEntry",
    "CommandResponse",
    "CommandStatus",
    "CurrentFile",
    "EpisodeInfo",
    "ImportHistoryEntry",
    "ImportManager",
    "ImportOutcome",
    "ImportStatus",
    "InvalidTransitionError",
    "LibraryItem",
    "OperationNotAllowedError",
    "PollStats",
    "RecordConflictError",
    "RecordState",
    "ReleaseSearcher",
    "SearchPassStats",
    "WantedItem",
    "get_core",
    "init_core",
]
