"""Core global instance management for reelgrab."""

from typing import TYPE_CHECKING

import anyio

from .. import config, db
from ..clients import get_download_clients
from ..indexers import get_indexers
from ..notifier import get_notifier
from ..scanner import get_scanner
from .importer import ImportManager
from .orchestrator import AcquisitionOrchestrator, StallHook
from .searcher import ReleaseSearcher

if TYPE_CHECKING:
    from apscheduler.schedulers.asyncio import AsyncIOScheduler

# Global core instance
_core_instance: AcquisitionOrchestrator | None = None
_core_lock = anyio.Lock()


async def init_core(
    scheduler: "AsyncIOScheduler", stall_hook: StallHook | None = None
) -> None:
    """Initialize global core instance.

    Assembles the orchestrator and import manager from global singletons.
    Should be called once during application startup.

    Args:
        scheduler: Scheduler that runs import jobs.
        stall_hook: Optional coroutine called when a download stalls.

    Raises:
        RuntimeError: If already initialized.
    """
    global _core_instance
    async with _core_lock:
        if _core_instance is not None:
            raise RuntimeError("Core already initialized.")

        database = db.get_database()

        # Build notifier only when notification URLs are configured
        notifier = None
        if config.cfg.global_config.notification_urls:
            notifier = get_notifier()

        importer = ImportManager(database=database, scanner=get_scanner(), notifier=notifier)
        _core_instance = AcquisitionOrchestrator(
            database=database,
            searcher=ReleaseSearcher(timeout=config.cfg.search.timeout),
            importer=importer,
            clients=get_download_clients(),
            indexers=get_indexers(),
            scheduler=scheduler,
            notifier=notifier,
            stall_hook=stall_hook,
        )


def get_core() -> AcquisitionOrchestrator:
    """Get global core instance.

    Must be called after init_core() has been invoked.

    Raises:
        RuntimeError: If core has not been initialized.
    """
    if _core_instance is None:
        raise RuntimeError("Core not initialized. Call init_core() first.")
    return _core_instance
