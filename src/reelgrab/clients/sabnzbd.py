"""
SABnzbd client implementation.
Provides integration with SABnzbd via its HTTP API.
"""

from typing import Any

from aiohttp import ClientError, ClientSession, ClientTimeout

from .. import logger
from ..indexers import Protocol
from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    parse_client_url,
)

# Queue slot status mapping for SABnzbd
SABNZBD_QUEUE_STATE_MAPPING = {
    "Queued": ClientState.QUEUED,
    "Grabbing": ClientState.METADATA_DOWNLOADING,
    "Fetching": ClientState.METADATA_DOWNLOADING,
    "Downloading": ClientState.DOWNLOADING,
    "Paused": ClientState.PAUSED,
    "Propagating": ClientState.QUEUED,
    "Checking": ClientState.CHECKING,
}

# History slot status mapping for SABnzbd
SABNZBD_HISTORY_STATE_MAPPING = {
    "Completed": ClientState.COMPLETED,
    "Failed": ClientState.ERROR,
    "Queued": ClientState.CHECKING,
    "Verifying": ClientState.CHECKING,
    "Repairing": ClientState.CHECKING,
    "Extracting": ClientState.CHECKING,
    "Moving": ClientState.MOVING,
    "Running": ClientState.CHECKING,
}


class SabnzbdClient(DownloadClient):
    """SABnzbd usenet client implementation."""

    protocol = Protocol.USENET

    def __init__(
        self,
        name: str,
        url: str,
        category: str = "reelgrab",
        session: ClientSession | None = None,
    ):
        super().__init__(name, category)
        client_config = parse_client_url(url)
        if not client_config.api_key:
            raise ValueError("SABnzbd URL must carry an apikey query parameter")
        self.api_url = f"{client_config.url or 'http://localhost:8080'}/api"
        self.api_key = client_config.api_key
        self.session = session or ClientSession(timeout=ClientTimeout(total=30.0))

    async def _api(self, mode: str, **params: Any) -> dict[str, Any]:
        query = {"mode": mode, "apikey": self.api_key, "output": "json", **params}
        try:
            async with self.session.get(self.api_url, params=query) as response:
                if response.status != 200:
                    raise ClientOperationError(f"SABnzbd returned HTTP {response.status}")
                data = await response.json(content_type=None)
        except ClientError as e:
            raise ClientOperationError(f"SABnzbd unreachable: {e}") from e

        if isinstance(data, dict) and data.get("status") is False:
            raise ClientOperationError(f"SABnzbd error: {data.get('error', 'unknown')}")
        return data

    # region Abstract Methods - Public Operations

    async def submit(self, link: str) -> str:
        data = await self._api("addurl", name=link, cat=self.category)
        nzo_ids = data.get("nzo_ids") or []
        if not nzo_ids:
            raise ClientOperationError("SABnzbd did not return an nzo id")
        return nzo_ids[0]

    async def get_statuses(self, external_ids: list[str]) -> dict[str, DownloadStatus]:
        if not external_ids:
            return {}
        wanted = set(external_ids)
        statuses: dict[str, DownloadStatus] = {}

        queue = await self._api("queue", nzo_ids=",".join(external_ids))
        for slot in queue.get("queue", {}).get("slots", []):
            if slot.get("nzo_id") not in wanted:
                continue
            statuses[slot["nzo_id"]] = DownloadStatus(
                external_id=slot["nzo_id"],
                name=slot.get("filename", ""),
                progress=float(slot.get("percentage", 0)),
                state=SABNZBD_QUEUE_STATE_MAPPING.get(slot.get("status", ""), ClientState.UNKNOWN),
                size=int(float(slot.get("mb", 0)) * 1024 * 1024),
            )

        missing = wanted - statuses.keys()
        if missing:
            history = await self._api("history", nzo_ids=",".join(sorted(missing)))
            for slot in history.get("history", {}).get("slots", []):
                if slot.get("nzo_id") not in missing:
                    continue
                state = SABNZBD_HISTORY_STATE_MAPPING.get(
                    slot.get("status", ""), ClientState.UNKNOWN
                )
                statuses[slot["nzo_id"]] = DownloadStatus(
                    external_id=slot["nzo_id"],
                    name=slot.get("name", ""),
                    progress=100.0 if state is ClientState.COMPLETED else 99.0,
                    state=state,
                    download_path=slot.get("storage") or None,
                    size=int(slot.get("bytes", 0)),
                    error=slot.get("fail_message") or None,
                )
        return statuses

    async def cancel(self, external_id: str, delete_files: bool = True) -> None:
        logger.debug("Removing job %s from SABnzbd", external_id)
        del_files = 1 if delete_files else 0
        await self._api("queue", name="delete", value=external_id, del_files=del_files)
        await self._api("history", name="delete", value=external_id, del_files=del_files)

    # endregion

    async def close(self) -> None:
        await self.session.close()
