from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from gymplan.core import Settings

logger = logging.getLogger(__name__)

DRIVE_API_URL = "https://www.googleapis.com/drive/v3"

# Share links look like .../file/d/<id>/view or .../open?id=<id>
_ID_PATTERNS = (
    re.compile(r"/d/([a-zA-Z0-9_-]+)"),
    re.compile(r"[?&]id=([a-zA-Z0-9_-]+)"),
)


class DriveNetworkError(RuntimeError):
    """The Drive API could not be reached; the link state is unknown."""


def extract_file_id(url: str) -> str | None:
    for pattern in _ID_PATTERNS:
        match = pattern.search(url)
        if match:
            return match.group(1)
    return None


class DriveClient:
    """
    Thin async client answering one question: does a shared file still exist?
    """

    def __init__(
        self,
        *,
        access_token: str | None = None,
        api_key: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = 10.0,
    ) -> None:
        headers = {"Accept": "application/json"}
        if access_token:
            headers["Authorization"] = f"Bearer {access_token}"
        self._api_key = api_key
        self._http = httpx.AsyncClient(
            base_url=DRIVE_API_URL,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> DriveClient:
        return cls(
            access_token=settings.drive_access_token,
            api_key=settings.drive_api_key,
        )

    async def close(self) -> None:
        await self._http.aclose()

    async def head_check(self, url: str) -> bool:
        """
        Return whether the file behind a share link still exists.

        Links without a recognizable file id, files that are gone (404) and
        files sitting in the trash count as missing. Any other HTTP answer is
        inconclusive and reported as existing. Transport failures raise
        DriveNetworkError.
        """

        file_id = extract_file_id(url)
        if file_id is None:
            logger.debug("No Drive file id in link %s", url)
            return False

        params: dict[str, Any] = {"fields": "id,trashed"}
        if self._api_key:
            params["key"] = self._api_key

        try:
            response = await self._http.get(f"/files/{file_id}", params=params)
        except httpx.TransportError as exc:
            raise DriveNetworkError(f"Drive API unreachable: {exc}") from exc

        if response.status_code == 404:
            return False
        if response.status_code >= 400:
            logger.info(
                "Inconclusive Drive check for %s: HTTP %s", file_id, response.status_code
            )
            return True

        data: dict[str, Any] = response.json()
        return not data.get("trashed", False)
