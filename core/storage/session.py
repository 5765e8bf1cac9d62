"""Process-wide credential store for the storage provider.

One ``StorageSession`` is owned by the storage manager and handed to the
authorizer, bucket resolver and request mapper. Nothing here performs I/O;
the session only records what the authorizer learned and when.

All mutation happens on the event loop between suspension points, so plain
attribute writes are atomic with respect to other requests.
"""

from __future__ import annotations

import asyncio
from typing import Any

from core.storage.types import AccountAuthorization, SessionState


class StorageSession:
    def __init__(self) -> None:
        self.token: str | None = None
        self.api_url: str | None = None
        self.download_url: str | None = None
        self.account_id: str | None = None
        self.allowed: dict[str, Any] = {}
        self.bucket_id: str | None = None
        self.last_attempt_at: float | None = None
        self.last_failure_at: float | None = None
        self.inflight: asyncio.Task[None] | None = None

    @property
    def acquiring(self) -> bool:
        return self.inflight is not None

    @property
    def is_authorized(self) -> bool:
        return self.token is not None

    @property
    def state(self) -> SessionState:
        if self.token is not None:
            return SessionState.AUTHENTICATED
        if self.acquiring:
            return SessionState.AUTHENTICATING
        return SessionState.UNAUTHENTICATED

    @property
    def allowed_bucket_id(self) -> str | None:
        return self.allowed.get("bucketId") or None

    @property
    def allowed_bucket_name(self) -> str | None:
        return self.allowed.get("bucketName") or None

    def store(self, authorization: AccountAuthorization) -> None:
        self.token = authorization.authorization_token
        self.api_url = authorization.api_url
        self.download_url = authorization.download_url
        self.account_id = authorization.account_id
        self.allowed = dict(authorization.allowed)

    def invalidate(self, token: str | None = None) -> bool:
        """Forget the bearer token and its endpoints.

        With ``token`` given, only that token is dropped; a newer one that
        another request already acquired is kept. ``bucket_id`` survives.
        """
        if self.token is None:
            return False
        if token is not None and token != self.token:
            return False
        self.token = None
        self.api_url = None
        self.download_url = None
        self.account_id = None
        return True

    def snapshot(self, now: float) -> dict[str, Any]:
        """Client-facing view; ``now`` comes from the same clock as the timestamps."""

        def _elapsed(moment: float | None) -> float | None:
            return None if moment is None else round(max(now - moment, 0.0), 3)

        return {
            "state": self.state.value,
            "authorized": self.is_authorized,
            "acquiring": self.acquiring,
            "bucketId": self.bucket_id,
            "secondsSinceLastAttempt": _elapsed(self.last_attempt_at),
            "secondsSinceLastFailure": _elapsed(self.last_failure_at),
        }

    def __repr__(self) -> str:
        return f"StorageSession(state={self.state.value}, bucket_id={self.bucket_id})"
