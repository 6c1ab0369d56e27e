from __future__ import annotations

import logging
import time

import httpx

from aide.config import GoogleConfig
from aide.errors import GoogleAPIError, NotConnectedError
from aide.storage.tokens import StoredToken, TokenStore

LOGGER = logging.getLogger(__name__)

REFRESH_MARGIN_SECONDS = 60.0


class GoogleAuth:
    """Hands out a valid Google access token, refreshing it when it is about to expire.

    Tokens are seeded into the token store by the authorization flow, which
    lives outside this package.
    """

    def __init__(
        self,
        config: GoogleConfig,
        token_store: TokenStore,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._config = config
        self._tokens = token_store
        self._http = http_client

    async def get_valid_token(self) -> str | None:
        token = await self._tokens.get(self._config.user_label)
        if token is None:
            return None
        if not token.expires_within(REFRESH_MARGIN_SECONDS):
            return token.access_token

        refreshed = await self.refresh(token)
        return refreshed.access_token

    async def is_connected(self) -> bool:
        return await self._tokens.get(self._config.user_label) is not None

    async def refresh(self, token: StoredToken) -> StoredToken:
        form = {
            "client_id": self._config.client_id,
            "client_secret": self._config.client_secret,
            "refresh_token": token.refresh_token,
            "grant_type": "refresh_token",
        }
        try:
            if self._http is not None:
                response = await self._http.post(self._config.token_url, data=form)
            else:
                async with httpx.AsyncClient(timeout=self._config.timeout_seconds) as client:
                    response = await client.post(self._config.token_url, data=form)
        except httpx.HTTPError as exc:
            raise GoogleAPIError(f"Google token refresh failed: {exc}") from exc

        if response.status_code in (400, 401):
            LOGGER.warning("Google refresh token rejected (status=%s)", response.status_code)
            raise NotConnectedError(
                "Google account not connected: refresh token was rejected, authorize again"
            )
        if response.status_code >= 400:
            raise GoogleAPIError(
                f"Google token refresh error ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        body = response.json()
        refreshed = StoredToken(
            user_label=token.user_label,
            access_token=body["access_token"],
            refresh_token=body.get("refresh_token") or token.refresh_token,
            token_type=body.get("token_type") or token.token_type,
            expires_at=time.time() + float(body.get("expires_in", 3600)),
            scope=body.get("scope") or token.scope,
        )
        await self._tokens.save(refreshed)
        LOGGER.info("Refreshed Google access token for %s", token.user_label)
        return refreshed
