"""
qBittorrent client implementation.
Provides integration with qBittorrent via its Web API.
"""

import posixpath
import uuid

import anyio
import qbittorrentapi
from asyncer import asyncify

from .. import logger
from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    info_hash_from_magnet,
    parse_client_url,
)

# State mapping for qBittorrent
QBITTORRENT_STATE_MAPPING = {
    "error": ClientState.ERROR,
    "missingFiles": ClientState.ERROR,
    "uploading": ClientState.SEEDING,
    "pausedUP": ClientState.COMPLETED,
    "stoppedUP": ClientState.COMPLETED,
    "queuedUP": ClientState.SEEDING,
    "stalledUP": ClientState.SEEDING,
    "checkingUP": ClientState.CHECKING,
    "forcedUP": ClientState.SEEDING,
    "allocating": ClientState.QUEUED,
    "downloading": ClientState.DOWNLOADING,
    "metaDL": ClientState.METADATA_DOWNLOADING,
    "forcedMetaDL": ClientState.METADATA_DOWNLOADING,
    "pausedDL": ClientState.PAUSED,
    "stoppedDL": ClientState.PAUSED,
    "queuedDL": ClientState.QUEUED,
    "forcedDL": ClientState.DOWNLOADING,
    "stalledDL": ClientState.DOWNLOADING,
    "checkingDL": ClientState.CHECKING,
    "checkingResumeData": ClientState.CHECKING,
    "moving": ClientState.MOVING,
    "unknown": ClientState.UNKNOWN,
}

# How long to wait for a torrent added by URL to show up under its tag
_TAG_LOOKUP_ATTEMPTS = 10
_TAG_LOOKUP_DELAY = 1.0


class QBittorrentClient(DownloadClient):
    """qBittorrent download client implementation."""

    def __init__(self, name: str, url: str, category: str = "reelgrab"):
        super().__init__(name, category)
        client_config = parse_client_url(url)
        self.client = qbittorrentapi.Client(
            host=client_config.url or "http://localhost:8080",
            username=client_config.username,
            password=client_config.password,
        )
        # Authenticate with qBittorrent
        if client_config.username and client_config.password:
            self.client.auth_log_in()

    # region Abstract Methods - Public Operations

    async def submit(self, link: str) -> str:
        """Add a torrent by magnet or URL and return its info hash.

        Torrents added by URL are tagged with a unique tag so the hash can
        be looked up afterwards; qBittorrent does not return it directly.
        """
        tag = f"reelgrab-{uuid.uuid4().hex[:12]}"
        try:
            result = await asyncify(self.client.torrents_add)(
                urls=link, category=self.category, tags=tag
            )
        except qbittorrentapi.APIError as e:
            raise ClientOperationError(f"qBittorrent rejected torrent: {e}") from e

        if result != "Ok.":
            raise ClientOperationError(f"qBittorrent rejected torrent: {result}")

        if info_hash := info_hash_from_magnet(link):
            return info_hash

        for _ in range(_TAG_LOOKUP_ATTEMPTS):
            torrents = await asyncify(self.client.torrents_info)(tag=tag)
            if torrents:
                return torrents[0].hash
            await anyio.sleep(_TAG_LOOKUP_DELAY)

        raise ClientOperationError(
            f"Torrent added to qBittorrent but never appeared (tag {tag})"
        )

    async def get_statuses(self, external_ids: list[str]) -> dict[str, DownloadStatus]:
        if not external_ids:
            return {}
        torrents = await asyncify(self.client.torrents_info)(
            torrent_hashes="|".join(external_ids)
        )
        statuses = {}
        for torrent in torrents:
            content_path = getattr(torrent, "content_path", None) or posixpath.join(
                torrent.save_path, torrent.name
            )
            statuses[torrent.hash] = DownloadStatus(
                external_id=torrent.hash,
                name=torrent.name,
                progress=round(torrent.progress * 100, 2),
                state=QBITTORRENT_STATE_MAPPING.get(torrent.state, ClientState.UNKNOWN),
                download_path=content_path,
                size=torrent.size,
            )
        return statuses

    async def cancel(self, external_id: str, delete_files: bool = True) -> None:
        logger.debug("Removing torrent %s from qBittorrent", external_id)
        await asyncify(self.client.torrents_delete)(
            delete_files=delete_files, torrent_hashes=external_id
        )

    # endregion
