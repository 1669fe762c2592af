"""
NZBGet client implementation.
Provides integration with NZBGet via its JSON-RPC interface.
"""

from typing import Any

from aiohttp import BasicAuth, ClientError, ClientSession, ClientTimeout

from .. import logger
from ..indexers import Protocol
from .client_common import (
    ClientOperationError,
    ClientState,
    DownloadClient,
    DownloadStatus,
    parse_client_url,
)

# Queue group status mapping for NZBGet
NZBGET_QUEUE_STATE_MAPPING = {
    "QUEUED": ClientState.QUEUED,
    "PAUSED": ClientState.PAUSED,
    "DOWNLOADING": ClientState.DOWNLOADING,
    "FETCHING": ClientState.METADATA_DOWNLOADING,
    "PP_QUEUED": ClientState.CHECKING,
    "LOADING_PARS": ClientState.CHECKING,
    "VERIFYING_SOURCES": ClientState.CHECKING,
    "REPAIRING": ClientState.CHECKING,
    "VERIFYING_REPAIRED": ClientState.CHECKING,
    "RENAMING": ClientState.CHECKING,
    "UNPACKING": ClientState.CHECKING,
    "MOVING": ClientState.MOVING,
    "EXECUTING_SCRIPT": ClientState.CHECKING,
    "PP_FINISHED": ClientState.CHECKING,
}

MEGABYTE = 1024 * 1024


def history_state(status: str) -> ClientState:
    """Map a ``KIND/DETAIL`` history status such as ``SUCCESS/UNPACK``."""
    if status == "WARNING/SCRIPT":
        return ClientState.COMPLETED
    kind = status.split("/", 1)[0]
    if kind == "SUCCESS":
        return ClientState.COMPLETED
    if kind in ("FAILURE", "DELETED", "WARNING"):
        return ClientState.ERROR
    return ClientState.UNKNOWN


class NzbgetClient(DownloadClient):
    """NZBGet usenet client implementation."""

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
        self.rpc_url = f"{client_config.url or 'http://localhost:6789'}/jsonrpc"
        self.auth = BasicAuth(client_config.username or "nzbget", client_config.password or "")
        self.session = session or ClientSession(timeout=ClientTimeout(total=30.0))

    async def _rpc(self, method: str, *params: Any) -> Any:
        payload = {"method": method, "params": list(params), "id": 1}
        try:
            async with self.session.post(self.rpc_url, json=payload, auth=self.auth) as response:
                if response.status == 401:
                    raise ClientOperationError("NZBGet rejected the credentials")
                if response.status != 200:
                    raise ClientOperationError(f"NZBGet returned HTTP {response.status}")
                data = await response.json(content_type=None)
        except ClientError as e:
            raise ClientOperationError(f"NZBGet unreachable: {e}") from e

        error = data.get("error")
        if error:
            message = error.get("message", "unknown") if isinstance(error, dict) else error
            raise ClientOperationError(f"NZBGet error: {message}")
        return data.get("result")

    # region Abstract Methods - Public Operations

    async def submit(self, link: str) -> str:
        # append(NZBFilename, Content, Category, Priority, AddToTop, AddPaused, DupeKey, DupeScore, DupeMode)
        nzb_id = await self._rpc("append", "", link, self.category, 0, False, False, "", 0, "SCORE")
        if isinstance(nzb_id, bool) or not isinstance(nzb_id, int) or nzb_id <= 0:
            raise ClientOperationError("NZBGet did not accept the nzb")
        return str(nzb_id)

    async def get_statuses(self, external_ids: list[str]) -> dict[str, DownloadStatus]:
        if not external_ids:
            return {}
        wanted = set(external_ids)
        statuses: dict[str, DownloadStatus] = {}

        for group in await self._rpc("listgroups") or []:
            nzb_id = str(group.get("NZBID"))
            if nzb_id not in wanted:
                continue
            total = group.get("FileSizeMB", 0)
            remaining = group.get("RemainingSizeMB", 0)
            statuses[nzb_id] = DownloadStatus(
                external_id=nzb_id,
                name=group.get("NZBName", ""),
                progress=(total - remaining) / total * 100 if total else 0.0,
                state=NZBGET_QUEUE_STATE_MAPPING.get(group.get("Status", ""), ClientState.UNKNOWN),
                download_path=group.get("DestDir") or None,
                size=total * MEGABYTE,
            )

        missing = wanted - statuses.keys()
        if missing:
            for entry in await self._rpc("history", False) or []:
                nzb_id = str(entry.get("NZBID"))
                if nzb_id not in missing:
                    continue
                status = entry.get("Status", "")
                state = history_state(status)
                statuses[nzb_id] = DownloadStatus(
                    external_id=nzb_id,
                    name=entry.get("Name", ""),
                    progress=100.0 if state is ClientState.COMPLETED else 99.0,
                    state=state,
                    download_path=entry.get("DestDir") or None,
                    size=entry.get("FileSizeMB", 0) * MEGABYTE,
                    error=status if state is ClientState.ERROR else None,
                )
        return statuses

    async def cancel(self, external_id: str, delete_files: bool = True) -> None:
        logger.debug("Removing job %s from NZBGet", external_id)
        ids = [int(external_id)]
        if delete_files:
            await self._rpc("editqueue", "GroupFinalDelete", "", ids)
            await self._rpc("editqueue", "HistoryFinalDelete", "", ids)
        else:
            await self._rpc("editqueue", "GroupDelete", "", ids)
            await self._rpc("editqueue", "HistoryDelete", "", ids)

    # endregion

    async def close(self) -> None:
        await self.session.close()
