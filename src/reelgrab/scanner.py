"""Targeted library rescans after an import."""

from abc import ABC, abstractmethod

import anyio
from aiohttp import ClientError, ClientSession, ClientTimeout

from . import logger


class LibraryScanner(ABC):
    """Asks the media library to rescan one path."""

    @abstractmethod
    async def scan_path(self, path: str) -> bool:
        """Request a rescan of ``path`` only.

        Returns:
            bool: True if the scanner accepted the request.
        """

    async def close(self) -> None:
        """Release scanner resources."""


class NullLibraryScanner(LibraryScanner):
    """Scanner used when no library endpoint is configured."""

    async def scan_path(self, path: str) -> bool:
        logger.debug("No library scanner configured, skipping rescan of %s", path)
        return False


class WebhookLibraryScanner(LibraryScanner):
    """POSTs ``{"path": ...}`` to a library webhook."""

    def __init__(self, url: str, token: str = "", session: ClientSession | None = None):
        self.url = url
        self.token = token
        self.session = session or ClientSession(timeout=ClientTimeout(total=15.0))

    async def scan_path(self, path: str) -> bool:
        headers = {"Authorization": f"Bearer {self.token}"} if self.token else {}
        try:
            async with self.session.post(
                self.url, json={"path": path}, headers=headers
            ) as response:
                if response.status >= 400:
                    logger.warning(
                        "Library scanner rejected rescan of %s: HTTP %d", path, response.status
                    )
                    return False
        except (ClientError, TimeoutError) as e:
            logger.warning("Library scanner unreachable for %s: %s", path, e)
            return False
        logger.debug("Requested library rescan of %s", path)
        return True

    async def close(self) -> None:
        await self.session.close()


# Global scanner instance
_scanner_instance: LibraryScanner | None = None
_scanner_lock = anyio.Lock()


async def init_scanner(url: str = "", token: str = "") -> None:
    """Initialize global library scanner instance.

    A webhook scanner is used when ``url`` is set, a no-op scanner otherwise.

    Raises:
        RuntimeError: If already initialized.
    """
    global _scanner_instance
    async with _scanner_lock:
        if _scanner_instance is not None:
            raise RuntimeError("Library scanner already initialized.")
        if url:
            logger.info("Library rescans go to %s", logger.redact_url_password(url))
            _scanner_instance = WebhookLibraryScanner(url, token)
        else:
            _scanner_instance = NullLibraryScanner()


def get_scanner() -> LibraryScanner:
    """Get global library scanner instance.

    Raises:
        RuntimeError: If the scanner has not been initialized.
    """
    if _scanner_instance is None:
        raise RuntimeError("Library scanner not initialized. Call init_scanner() first.")
    return _scanner_instance
