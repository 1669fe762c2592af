"""Download client implementations for reelgrab."""

from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    info_hash_from_magnet,
    parse_client_url,
)
from .deluge import DelugeClient
from .qbittorrent import QBittorrentClient
from .registry import (
    CLIENT_MAPPING,
    cleanup_download_clients,
    create_download_client,
    get_download_client,
    get_download_clients,
    init_download_clients,
)
from .nzbget import NzbgetClient
from .sabnzbd import SabnzbdClient
from .transmission import TransmissionClient

__all__ = [
    "CLIENT_MAPPING",
    "ClientOperationError",
    "ClientState",
    "DelugeClient",
    "DownloadClient",
    "DownloadStatus",
    "NzbgetClient",
    "QBittorrentClient",
    "SabnzbdClient",
    "TransmissionClient",
    "cleanup_download_clients",
    "create_download_client",
    "get_download_client",
    "get_download_clients",
    "info_hash_from_magnet",
    "parse_client_url",
]
