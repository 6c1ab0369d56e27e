from __future__ import annotations

import time
from dataclasses import dataclass

from aide.storage.database import Database


@dataclass(frozen=True)
class StoredToken:
    user_label: str
    access_token: str
    refresh_token: str
    expires_at: float
    token_type: str = "Bearer"
    scope: str | None = None
    updated_at: float = 0.0

    def expires_within(self, seconds: float, now: float | None = None) -> bool:
        current = time.time() if now is None else now
        return self.expires_at <= current + seconds


class TokenStore:
    def __init__(self, db: Database) -> None:
        self._db = db

    async def get(self, user_label: str) -> StoredToken | None:
        row = await self._db.fetchone(
            """
            SELECT user_label, access_token, refresh_token, token_type, expires_at, scope, updated_at
            FROM oauth_tokens WHERE user_label = ?
            """,
            (user_label,),
        )
        if row is None:
            return None
        return StoredToken(
            user_label=row["user_label"],
            access_token=row["access_token"],
            refresh_token=row["refresh_token"],
            token_type=row["token_type"],
            expires_at=float(row["expires_at"]),
            scope=row["scope"],
            updated_at=float(row["updated_at"]),
        )

    async def save(self, token: StoredToken) -> None:
        await self._db.execute(
            """
            INSERT INTO oauth_tokens
                (user_label, access_token, refresh_token, token_type, expires_at, scope, updated_at)
            VALUES (?, ?, ?, ?, ?, ?, ?)
            ON CONFLICT (user_label) DO UPDATE SET
                access_token = excluded.access_token,
                refresh_token = excluded.refresh_token,
                token_type = excluded.token_type,
                expires_at = excluded.expires_at,
                scope = excluded.scope,
                updated_at = excluded.updated_at
            """,
            (
                token.user_label,
                token.access_token,
                token.refresh_token,
                token.token_type,
                token.expires_at,
                token.scope,
                time.time(),
            ),
        )
