"""
Deluge client implementation.
Provides integration with Deluge via its RPC interface.
"""

import posixpath

import deluge_client
from asyncer import asyncify

from .. import logger
from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    parse_client_url,
)

# State mapping for Deluge
DELUGE_STATE_MAPPING = {
    "Error": ClientState.ERROR,
    "Paused": ClientState.PAUSED,
    "Queued": ClientState.QUEUED,
    "Checking": ClientState.CHECKING,
    "Downloading": ClientState.DOWNLOADING,
    "Downloading Metadata": ClientState.METADATA_DOWNLOADING,
    "Finished": ClientState.COMPLETED,
    "Seeding": ClientState.SEEDING,
    "Allocating": ClientState.QUEUED,
    "Moving": ClientState.MOVING,
}

_STATUS_KEYS = ["hash", "name", "progress", "state", "save_path", "total_size", "message"]


class DelugeClient(DownloadClient):
    """Deluge download client implementation."""

    def __init__(self, name: str, url: str, category: str = "reelgrab"):
        super().__init__(name, category)
        client_config = parse_client_url(url)
        self.client = deluge_client.DelugeRPCClient(
            host=client_config.host or "localhost",
            port=client_config.port or 58846,
            username=client_config.username or "",
            password=client_config.password or "",
            decode_utf8=True,
            timeout=60,
        )
        # Connect to Deluge daemon
        self.client.connect()

    # region Abstract Methods - Public Operations

    async def submit(self, link: str) -> str:
        options = {"add_paused": False}
        method = "core.add_torrent_magnet" if link.startswith("magnet:") else "core.add_torrent_url"
        try:
            torrent_hash = await asyncify(self.client.call)(method, link, options)
        except Exception as e:
            raise ClientOperationError(f"Deluge rejected torrent: {e}") from e

        if not torrent_hash:
            raise ClientOperationError("Deluge did not return a torrent hash")

        if self.category:
            try:
                await asyncify(self.client.call)("label.set_torrent", torrent_hash, self.category)
            except Exception as e:
                # Label plugin is optional
                logger.debug("Could not label torrent %s: %s", torrent_hash, e)
        return str(torrent_hash)

    async def get_statuses(self, external_ids: list[str]) -> dict[str, DownloadStatus]:
        if not external_ids:
            return {}
        torrent_details = await asyncify(self.client.call)(
            "core.get_torrents_status", {"id": external_ids}, _STATUS_KEYS
        )
        if not isinstance(torrent_details, dict):
            logger.error("Invalid torrents details from Deluge: %s", torrent_details)
            return {}

        statuses = {}
        for torrent_hash, torrent in torrent_details.items():
            state = DELUGE_STATE_MAPPING.get(torrent["state"], ClientState.UNKNOWN)
            statuses[torrent_hash] = DownloadStatus(
                external_id=torrent_hash,
                name=torrent["name"],
                progress=float(torrent["progress"]),
                state=state,
                download_path=posixpath.join(torrent["save_path"], torrent["name"]),
                size=torrent["total_size"],
                error=torrent.get("message") if state is ClientState.ERROR else None,
            )
        return statuses

    async def cancel(self, external_id: str, delete_files: bool = True) -> None:
        logger.debug("Removing torrent %s from Deluge", external_id)
        await asyncify(self.client.call)("core.remove_torrent", external_id, delete_files)

    # endregion
