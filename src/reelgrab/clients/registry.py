"""Download client registry and global instance management for reelgrab."""

from contextlib import suppress
from urllib.parse import urlparse

import anyio

from .. import logger
from ..config import DownloadClientConfig
from .client_common import DownloadClient
from .deluge import DelugeClient
from .qbittorrent import QBittorrentClient
from .nzbget import NzbgetClient
from .sabnzbd import SabnzbdClient
from .transmission import TransmissionClient

# Download client factory mapping
CLIENT_MAPPING: dict[str, type[DownloadClient]] = {
    "qbittorrent": QBittorrentClient,
    "deluge": DelugeClient,
    "transmission": TransmissionClient,
    "sabnzbd": SabnzbdClient,
    "nzbget": NzbgetClient,
}


def create_download_client(client_config: DownloadClientConfig) -> DownloadClient:
    """Create a download client instance based on the URL scheme.

    Args:
        client_config: Download client configuration section.

    Returns:
        DownloadClient: Configured download client.

    Raises:
        ValueError: If URL is empty or client type is not supported.
    """
    url = client_config.url
    if not url or not url.strip():
        raise ValueError("URL cannot be empty")

    client_type = urlparse(url).scheme.split("+")[0]
    if client_type not in CLIENT_MAPPING:
        raise ValueError(f"Unsupported download client type: {client_type}")

    return CLIENT_MAPPING[client_type](
        client_config.name, url, category=client_config.category
    )


# Global download client instances, keyed by client name
_clients_instance: dict[str, DownloadClient] = {}
_clients_lock = anyio.Lock()


async def init_download_clients(client_configs: list[DownloadClientConfig]) -> None:
    """Initialize global download client instances.

    Should be called once during application startup.

    Raises:
        RuntimeError: If already initialized.
    """
    global _clients_instance
    async with _clients_lock:
        if _clients_instance:
            raise RuntimeError("Download clients already initialized.")

        logger.section("Connecting Download Clients")
        clients = {}
        for client_config in client_configs:
            client = create_download_client(client_config)
            logger.success(
                "Connected to %s (%s)",
                client.name,
                logger.redact_url_password(client_config.url),
            )
            clients[client.name] = client
        _clients_instance = clients


def get_download_clients() -> dict[str, DownloadClient]:
    """Get all global download client instances, keyed by name."""
    return _clients_instance


def get_download_client(name: str) -> DownloadClient:
    """Get one download client by name.

    Raises:
        RuntimeError: If no client with that name was initialized.
    """
    if name not in _clients_instance:
        raise RuntimeError(
            f"Download client {name!r} not initialized. Call init_download_clients() first."
        )
    return _clients_instance[name]


async def cleanup_download_clients() -> None:
    """Close all download clients and forget them."""
    global _clients_instance
    async with _clients_lock:
        for client in _clients_instance.values():
            with suppress(Exception):
                await client.close()
        _clients_instance = {}
