"""
Transmission client implementation.
Provides integration with Transmission via its JSON RPC interface.
"""

import posixpath
from typing import Any
from urllib.parse import urlparse

from aiohttp import BasicAuth, ClientError, ClientSession, ClientTimeout

from .. import logger
from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    parse_client_url,
)

SESSION_HEADER = "X-Transmission-Session-Id"

# Torrent status codes for Transmission
TRANSMISSION_STATE_MAPPING = {
    0: ClientState.PAUSED,  # stopped
    1: ClientState.CHECKING,  # queued to verify
    2: ClientState.CHECKING,  # verifying
    3: ClientState.QUEUED,  # queued to download
    4: ClientState.DOWNLOADING,
    5: ClientState.SEEDING,  # queued to seed
    6: ClientState.SEEDING,
}

# Error code 3 is a local error; 1 and 2 are tracker warnings and errors
LOCAL_ERROR = 3

STATUS_FIELDS = [
    "hashString",
    "name",
    "percentDone",
    "metadataPercentComplete",
    "status",
    "downloadDir",
    "totalSize",
    "error",
    "errorString",
]


class TransmissionClient(DownloadClient):
    """Transmission torrent client implementation."""

    def __init__(
        self,
        name: str,
        url: str,
        category: str = "reelgrab",
        session: ClientSession | None = None,
    ):
        super().__init__(name, category)
        client_config = parse_client_url(url)
        base_url = client_config.url or "http://localhost:9091"
        self.rpc_url = base_url if urlparse(base_url).path else f"{base_url}/transmission/rpc"
        self.auth = (
            BasicAuth(client_config.username, client_config.password or "")
            if client_config.username
            else None
        )
        self.session = session or ClientSession(timeout=ClientTimeout(total=30.0))
        self.session_id = ""

    async def _rpc(self, method: str, **arguments: Any) -> dict[str, Any]:
        """Call an RPC method, renewing the session id once if Transmission asks for it."""
        payload = {"method": method, "arguments": arguments}
        for _ in range(2):
            headers = {SESSION_HEADER: self.session_id} if self.session_id else {}
            try:
                async with self.session.post(
                    self.rpc_url, json=payload, headers=headers, auth=self.auth
                ) as response:
                    if response.status == 409:
                        self.session_id = response.headers.get(SESSION_HEADER, "")
                        continue
                    if response.status == 401:
                        raise ClientOperationError("Transmission rejected the credentials")
                    if response.status != 200:
                        raise ClientOperationError(f"Transmission returned HTTP {response.status}")
                    data = await response.json(content_type=None)
            except ClientError as e:
                raise ClientOperationError(f"Transmission unreachable: {e}") from e

            if data.get("result") != "success":
                raise ClientOperationError(f"Transmission error: {data.get('result', 'unknown')}")
            return data.get("arguments") or {}
        raise ClientOperationError("Transmission did not accept the session id")

    # region Abstract Methods - Public Operations

    async def submit(self, link: str) -> str:
        arguments = await self._rpc("torrent-add", filename=link, labels=[self.category])
        torrent = arguments.get("torrent-added") or arguments.get("torrent-duplicate")
        if not torrent or not torrent.get("hashString"):
            raise ClientOperationError("Transmission did not return a torrent hash")
        if "torrent-duplicate" in arguments:
            logger.debug("Torrent %s already in Transmission", torrent["hashString"])
        return torrent["hashString"].lower()

    async def get_statuses(self, external_ids: list[str]) -> dict[str, DownloadStatus]:
        if not external_ids:
            return {}
        wanted = {external_id.lower() for external_id in external_ids}
        arguments = await self._rpc("torrent-get", ids=sorted(wanted), fields=STATUS_FIELDS)

        statuses: dict[str, DownloadStatus] = {}
        for torrent in arguments.get("torrents", []):
            info_hash = torrent.get("hashString", "").lower()
            if info_hash not in wanted:
                continue
            state = TRANSMISSION_STATE_MAPPING.get(torrent.get("status"), ClientState.UNKNOWN)
            if state is ClientState.DOWNLOADING and torrent.get("metadataPercentComplete", 1) < 1:
                state = ClientState.METADATA_DOWNLOADING
            if torrent.get("error") == LOCAL_ERROR:
                state = ClientState.ERROR

            download_dir = torrent.get("downloadDir")
            statuses[info_hash] = DownloadStatus(
                external_id=info_hash,
                name=torrent.get("name", ""),
                progress=float(torrent.get("percentDone", 0)) * 100,
                state=state,
                download_path=(
                    posixpath.join(download_dir, torrent.get("name", "")) if download_dir else None
                ),
                size=int(torrent.get("totalSize", 0)),
                error=torrent.get("errorString") or None,
            )
        return statuses

    async def cancel(self, external_id: str, delete_files: bool = True) -> None:
        logger.debug("Removing torrent %s from Transmission", external_id)
        await self._rpc(
            "torrent-remove", ids=[external_id], **{"delete-local-data": delete_files}
        )

    # endregion

    async def close(self) -> None:
        await self.session.close()
