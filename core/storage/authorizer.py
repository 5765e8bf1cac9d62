"""Lazy, single-flight acquisition of the storage bearer token.

``ensure_authorized`` is called before every provider request. It returns
without I/O while a token is cached, joins an acquisition that is already
running instead of starting a second one, and refuses to hit the login
endpoint again while a failed attempt is still inside the cooldown window.

The cooldown is keyed on the last *failed* attempt. A token that was
acquired successfully and later invalidated is re-acquired straight away.
"""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Any, Callable

from core.errors import AuthError, ConfigError, StorageError
from core.storage.provider import StorageApi
from core.storage.session import StorageSession

logger = logging.getLogger(__name__)


class Authorizer:
    def __init__(
        self,
        session: StorageSession,
        api: StorageApi,
        *,
        key_id: str | None,
        application_key: str | None,
        cooldown_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._session = session
        self._api = api
        self._key_id = key_id.strip() if key_id else None
        self._application_key = application_key.strip() if application_key else None
        self._cooldown_seconds = cooldown_seconds
        self._clock = clock

    @property
    def session(self) -> StorageSession:
        return self._session

    def missing_credentials(self) -> list[str]:
        missing: list[str] = []
        if not self._key_id:
            missing.append("B2_KEY_ID")
        if not self._application_key:
            missing.append("B2_APPLICATION_KEY")
        return missing

    def cooldown_remaining(self) -> float:
        last_failure_at = self._session.last_failure_at
        if last_failure_at is None:
            return 0.0
        return max(self._cooldown_seconds - (self._clock() - last_failure_at), 0.0)

    def status(self) -> dict[str, Any]:
        snapshot = self._session.snapshot(self._clock())
        snapshot["cooldownRemainingSeconds"] = round(self.cooldown_remaining(), 3)
        return snapshot

    async def ensure_authorized(self) -> None:
        session = self._session
        if session.token is not None:
            return

        if session.inflight is None:
            retry_after = self.cooldown_remaining()
            if retry_after > 0:
                raise AuthError(
                    "Storage authorization failed recently, retry later",
                    retry_after=retry_after,
                )
            session.inflight = asyncio.ensure_future(self._acquire())
            session.inflight.add_done_callback(consume_task_result)

        # Shielded so a cancelled request does not abort the login other
        # requests are waiting on.
        await asyncio.shield(session.inflight)

    async def force_reauthorize(self) -> None:
        if self._session.inflight is None:
            self.invalidate()
        await self.ensure_authorized()

    def invalidate(self, token: str | None = None) -> None:
        if self._session.invalidate(token):
            logger.info("Storage token invalidated, next request re-authorizes")

    async def _acquire(self) -> None:
        session = self._session
        session.last_attempt_at = self._clock()
        try:
            missing = self.missing_credentials()
            if missing:
                logger.error("Storage credentials not configured: %s", ", ".join(missing))
                raise ConfigError(missing)

            logger.info("Authorizing with storage provider %s", self._api.provider_name)
            try:
                authorization = await self._api.authorize_account(
                    key_id=self._key_id or "",
                    application_key=self._application_key or "",
                )
            except StorageError as exc:
                session.last_failure_at = self._clock()
                logger.error("Storage authorization failed: %s", exc)
                raise AuthError(error=str(exc)) from exc
            except Exception:
                session.last_failure_at = self._clock()
                logger.exception("Unexpected error during storage authorization")
                raise

            session.store(authorization)
            session.last_failure_at = None
            logger.info("Storage authorization succeeded for account %s", authorization.account_id)
        finally:
            session.inflight = None


def consume_task_result(task: asyncio.Task) -> None:
    # Marks the outcome as retrieved when every waiter was cancelled.
    if not task.cancelled():
        task.exception()
