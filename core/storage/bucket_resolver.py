from __future__ import annotations

import asyncio
import logging

from core.errors import ConfigError, NotFoundError, UnauthorizedSignal
from core.storage.authorizer import Authorizer, consume_task_result
from core.storage.provider import StorageApi
from core.storage.session import StorageSession

logger = logging.getLogger(__name__)


class BucketResolver:
    """Maps the configured bucket name to its id, once per process."""

    def __init__(self, session: StorageSession, authorizer: Authorizer, api: StorageApi) -> None:
        self._session = session
        self._authorizer = authorizer
        self._api = api
        self._pending: asyncio.Task[str] | None = None

    async def resolve_bucket_id(self, name: str | None) -> str:
        if self._session.bucket_id is not None:
            return self._session.bucket_id
        if not name:
            raise ConfigError(["B2_BUCKET_NAME"])

        if self._pending is None:
            self._pending = asyncio.ensure_future(self._lookup(name))
            self._pending.add_done_callback(consume_task_result)
        return await asyncio.shield(self._pending)

    async def _lookup(self, name: str) -> str:
        try:
            await self._authorizer.ensure_authorized()
            session = self._session

            # Bucket-scoped keys name their bucket in the login reply.
            if session.allowed_bucket_id and session.allowed_bucket_name == name:
                bucket_id = session.allowed_bucket_id
            else:
                token = session.token or ""
                try:
                    buckets = await self._api.list_buckets(
                        api_url=session.api_url or "",
                        token=token,
                        account_id=session.account_id or "",
                        bucket_name=name,
                    )
                except UnauthorizedSignal:
                    self._authorizer.invalidate(token)
                    raise

                match = next((bucket for bucket in buckets if bucket.bucket_name == name), None)
                if match is None:
                    logger.error("Bucket '%s' not found", name)
                    raise NotFoundError("Bucket", name, message=f"Bucket '{name}' not found")
                bucket_id = match.bucket_id

            session.bucket_id = bucket_id
            logger.info("Resolved bucket '%s' to %s", name, bucket_id)
            return bucket_id
        finally:
            self._pending = None
