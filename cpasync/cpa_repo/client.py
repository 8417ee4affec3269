"""HTTP client for the authoritative CPA repository."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx

from cpasync.exceptions import RepositoryDataError

if TYPE_CHECKING:
    from types import TracebackType

    from cpasync.config import Settings

logger = logging.getLogger(__name__)

TIMESTAMPS_PATH = "/cpa/timestamps"
UPSERT_PATH = "/cpa"
DELETE_PATH = "/cpa/delete/{cpa_id}"
UPDATED_DATE_HEADER = "updated_date"


class CpaRepoClient:
    """Reads and writes CPAs in the CPA repository.

    Non-2xx responses raise ``httpx.HTTPStatusError``; connection problems
    raise the corresponding ``httpx.TransportError``.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self.client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> CpaRepoClient:
        token = (
            settings.cpa_repo_token.get_secret_value()
            if settings.cpa_repo_token is not None
            else None
        )
        return cls(settings.cpa_repo_url, token=token, timeout=settings.cpa_repo_timeout_seconds)

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self) -> CpaRepoClient:
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        await self.close()

    async def get_timestamps(self) -> dict[str, str]:
        """Return the repository's last-updated timestamp for every CPA id."""
        resp = await self.client.get(TIMESTAMPS_PATH)
        resp.raise_for_status()
        try:
            data = resp.json()
        except ValueError as exc:
            msg = f"Invalid JSON from {TIMESTAMPS_PATH}"
            raise RepositoryDataError(msg) from exc
        if not isinstance(data, dict):
            msg = f"Expected a JSON object from {TIMESTAMPS_PATH}, got {type(data).__name__}"
            raise RepositoryDataError(msg)
        return {str(cpa_id): str(timestamp) for cpa_id, timestamp in data.items()}

    async def upsert(self, content: str, timestamp: str) -> None:
        """Insert or replace a CPA document, stamped with its file-store timestamp."""
        resp = await self.client.post(
            UPSERT_PATH,
            content=content.encode("utf-8"),
            headers={
                UPDATED_DATE_HEADER: timestamp,
                "Content-Type": "application/xml; charset=utf-8",
            },
        )
        resp.raise_for_status()

    async def delete(self, cpa_id: str) -> None:
        """Delete a CPA from the repository."""
        resp = await self.client.delete(DELETE_PATH.format(cpa_id=quote(cpa_id, safe=":")))
        resp.raise_for_status()
        logger.debug("Repository deleted %s (status %d)", cpa_id, resp.status_code)
