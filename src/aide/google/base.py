from __future__ import annotations

from typing import Any
from urllib.parse import quote

import httpx

from aide.errors import GoogleAPIError, NotConnectedError
from aide.google.auth import GoogleAuth


def path_segment(value: str) -> str:
    return quote(value, safe="@")


class GoogleRESTClient:
    api_name = "Google"

    def __init__(
        self,
        auth: GoogleAuth,
        base_url: str,
        *,
        timeout_seconds: float = 15.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._auth = auth
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = timeout_seconds
        self._http = http_client

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: dict[str, str] | None = None,
        body: dict[str, Any] | None = None,
    ) -> Any:
        token = await self._auth.get_valid_token()
        if not token:
            raise NotConnectedError(f"{self.api_name} not connected. Complete Google authorization first.")

        headers = {"Authorization": f"Bearer {token}"}
        url = f"{self._base_url}{path}"
        try:
            if self._http is not None:
                response = await self._http.request(method, url, params=params, json=body, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_seconds) as client:
                    response = await client.request(method, url, params=params, json=body, headers=headers)
        except httpx.HTTPError as exc:
            raise GoogleAPIError(f"{self.api_name} request failed: {exc}") from exc

        if response.status_code >= 400:
            raise GoogleAPIError(
                f"{self.api_name} API error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )
        if response.status_code == 204 or not response.content:
            return None
        return response.json()
