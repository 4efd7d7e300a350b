"""
Remote source for Directory Sync.

Fetches the full current user set from the remote HTTP endpoint with a single
GET. There is no retry here (that is the synchronizer's call) and no side
effect beyond the request itself.
"""

from __future__ import annotations

import json
from typing import List, Optional, Protocol, runtime_checkable

import httpx

from directory_sync.config import get_settings
from directory_sync.domain.errors import FormatError, NetworkError
from directory_sync.domain.models import RemoteRecord, parse_remote_records
from directory_sync.utils.logging import get_logger

log = get_logger(__name__)


@runtime_checkable
class RemoteSource(Protocol):
    """
    Anything that can produce the full remote snapshot.
    """

    async def fetch_all(self) -> List[RemoteRecord]:
        """
        Fetch every remote record.

        Raises
        ------
        NetworkError
            Connection failure, timeout, or non-2xx response.
        FormatError
            The payload is not a JSON array.
        """
        ...


class HttpRemoteSource:
    """
    `RemoteSource` backed by an `httpx.AsyncClient`.

    Malformed array items are skipped (see `parse_remote_records`); a body that
    is not JSON, or not a JSON array, rejects the whole fetch.

    Attributes
    ----------
    url : str
        Fully resolved users endpoint.
    timeout : float | None
        Request timeout in seconds; None disables it.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        users_path: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        settings = get_settings()
        base = (base_url or settings.remote_base_url).rstrip("/")
        path = (users_path if users_path is not None else settings.remote_users_path).lstrip("/")
        self.url = f"{base}/{path}"
        self.timeout = timeout if timeout is not None else settings.remote_timeout_seconds
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                transport=self._transport,
                headers={"Accept": "application/json"},
            )
        return self._client

    async def fetch_all(self) -> List[RemoteRecord]:
        client = self._get_client()
        try:
            response = await client.get(self.url)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise NetworkError(
                f"Remote returned HTTP {exc.response.status_code}",
                details={"url": self.url, "status_code": exc.response.status_code},
            ) from exc
        except httpx.TransportError as exc:
            raise NetworkError(
                f"Remote unreachable: {exc.__class__.__name__}",
                details={"url": self.url},
            ) from exc

        try:
            payload = response.json()
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise FormatError("Remote payload is not valid JSON", details={"url": self.url}) from exc
        if not isinstance(payload, list):
            raise FormatError(
                "Remote payload is not a JSON array",
                details={"url": self.url, "type": type(payload).__name__},
            )

        records, skipped = parse_remote_records(payload)
        log.debug(
            "[REMOTE FETCHED]",
            extra={"url": self.url, "items": len(payload), "valid": len(records), "skipped": len(skipped)},
        )
        return records

    async def aclose(self) -> None:
        """
        Close the HTTP client and release connections.
        """
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()
        self._client = None


__all__ = ["RemoteSource", "HttpRemoteSource"]
