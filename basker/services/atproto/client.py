from typing import Any

import httpx
from loguru import logger

from basker.core.base_client import BaseClient
from basker.core.config import APP_VERSION, settings
from basker.core.constants import NOT_FOUND_ERRORS
from basker.core.exceptions import NotFoundError


def xrpc_error_name(exc: httpx.HTTPStatusError) -> str | None:
    """Return the XRPC ``error`` field of a failed response, if the body carries one."""
    try:
        body = exc.response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        return body.get("error")
    return None


def is_not_found(exc: httpx.HTTPStatusError) -> bool:
    if exc.response.status_code == 404:
        return True
    return xrpc_error_name(exc) in NOT_FOUND_ERRORS


class XrpcClient(BaseClient):
    """
    Client for the AT Protocol XRPC endpoints of a PDS.

    Queries map to GET and procedures to POST under ``/xrpc/<nsid>``. Missing
    records are raised as ``NotFoundError``; every other failure is the raw
    ``httpx`` exception.
    """

    def __init__(
        self,
        base_url: str | None = None,
        timeout: float | None = None,
        max_retries: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        headers = {
            "User-Agent": f"Basker/{APP_VERSION}",
            "Accept": "application/json",
        }
        super().__init__(
            base_url=base_url or settings.PDS_URL,
            timeout=timeout or settings.REQUEST_TIMEOUT,
            max_retries=max_retries or settings.MAX_RETRIES,
            headers=headers,
            transport=transport,
        )

    @staticmethod
    def _auth_headers(token: str | None) -> dict[str, str]:
        return {"Authorization": f"Bearer {token}"} if token else {}

    async def query(self, nsid: str, params: dict[str, Any] | None = None, token: str | None = None) -> dict[str, Any]:
        try:
            return await self.get(f"/xrpc/{nsid}", params=params, headers=self._auth_headers(token))
        except httpx.HTTPStatusError as e:
            if is_not_found(e):
                logger.debug(f"{nsid} -> not found ({xrpc_error_name(e) or e.response.status_code})")
                raise NotFoundError(f"{nsid}: not found", error=xrpc_error_name(e)) from e
            raise

    async def procedure(
        self,
        nsid: str,
        body: dict[str, Any] | None = None,
        token: str | None = None,
        max_tries: int | None = None,
    ) -> dict[str, Any]:
        try:
            return await self.post(
                f"/xrpc/{nsid}", json=body, headers=self._auth_headers(token), max_tries=max_tries
            )
        except httpx.HTTPStatusError as e:
            if is_not_found(e):
                logger.debug(f"{nsid} -> not found ({xrpc_error_name(e) or e.response.status_code})")
                raise NotFoundError(f"{nsid}: not found", error=xrpc_error_name(e)) from e
            raise
