# src/plant_todo/sync/remote.py

from __future__ import annotations

import logging
from typing import Any

import httpx

from ..core.ports import JsonDict

logger = logging.getLogger(__name__)

SYNC_PATH = "/api/sync/{profile}"
HISTORY_PATH = "/api/sync/recodes/{profile}"
IMAGE_PATH = "/api/sync/image/{profile}"
RESET_PATH = "/api/sync/factory-reset"

MAX_IMAGE_BYTES = 20 * 1024 * 1024


class RemoteStoreError(RuntimeError):
    """Transport failure, unexpected status or unreadable body from the remote store."""


class RemoteStoreClient:
    """
    Async client for the key/value snapshot store, the append-only history log
    and the background image slot, all scoped to one profile id.
    """

    def __init__(
        self,
        base_url: str,
        profile_id: str = "default",
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not base_url:
            raise RuntimeError("Remote store base URL is not set. Set PLANT_API_BASE_URL in your .env.")
        self._profile = profile_id
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            timeout=httpx.Timeout(timeout),
            transport=transport,
        )

    @property
    def profile_id(self) -> str:
        return self._profile

    async def aclose(self) -> None:
        await self._client.aclose()

    # ---- low-level helpers ----

    def _path(self, template: str) -> str:
        return template.format(profile=self._profile)

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            raise RemoteStoreError(f"{method} {path} failed: {exc.__class__.__name__}: {exc}") from exc

    @staticmethod
    def _ensure_ok(response: httpx.Response) -> None:
        if response.is_success:
            return
        detail = response.text[:200]
        raise RemoteStoreError(
            f"Remote error {response.status_code} {response.reason_phrase}: {detail}"
        )

    @staticmethod
    def _json(response: httpx.Response) -> Any:
        try:
            return response.json()
        except ValueError as exc:
            raise RemoteStoreError(f"Remote returned invalid JSON ({response.status_code}).") from exc

    # ---- snapshot ----

    async def get_snapshot(self) -> JsonDict | None:
        """Return the stored AppState JSON, or None when the profile has none yet."""
        response = await self._request("GET", self._path(SYNC_PATH))
        if response.status_code == 404:
            return None
        self._ensure_ok(response)
        data = self._json(response)
        if not isinstance(data, dict):
            logger.warning("Snapshot is not a JSON object (%s); treating as absent.", type(data).__name__)
            return None
        # The store answers {} for a profile that was never written.
        return data or None

    async def put_snapshot(self, payload: JsonDict) -> None:
        response = await self._request("POST", self._path(SYNC_PATH), json=payload)
        self._ensure_ok(response)

    async def factory_reset(self) -> int:
        response = await self._request("POST", RESET_PATH)
        self._ensure_ok(response)
        data = self._json(response)
        if not isinstance(data, dict):
            return 0
        deleted = data.get("deletedCount", data.get("deleted", 0))
        return deleted if isinstance(deleted, int) else 0

    # ---- history ----

    async def get_history(self) -> list[JsonDict]:
        response = await self._request("GET", self._path(HISTORY_PATH))
        if response.status_code == 404:
            return []
        self._ensure_ok(response)
        data = self._json(response)
        if not isinstance(data, list):
            return []
        return [item for item in data if isinstance(item, dict)]

    async def append_history(self, records: JsonDict | list[JsonDict]) -> int:
        response = await self._request("POST", self._path(HISTORY_PATH), json=records)
        self._ensure_ok(response)
        data = self._json(response)
        added = data.get("added") if isinstance(data, dict) else None
        if isinstance(added, int):
            return added
        return len(records) if isinstance(records, list) else 1

    # ---- background image ----

    async def upload_image(self, data: bytes, *, filename: str = "background") -> None:
        if len(data) > MAX_IMAGE_BYTES:
            raise RemoteStoreError("Background image exceeds the 20 MB limit.")
        response = await self._request(
            "POST",
            self._path(IMAGE_PATH),
            files={"file": (filename, data, "application/octet-stream")},
        )
        self._ensure_ok(response)

    async def fetch_image(self) -> bytes | None:
        response = await self._request("GET", self._path(IMAGE_PATH))
        if response.status_code == 404:
            return None
        self._ensure_ok(response)
        return response.content
