from __future__ import annotations

import logging
from typing import Awaitable, Callable, TypeVar

from core.errors import RetriableAuthError, UnauthorizedSignal
from core.storage.authorizer import Authorizer
from core.storage.bucket_resolver import BucketResolver
from core.storage.session import StorageSession
from core.storage.types import AuthorizedContext

logger = logging.getLogger(__name__)

T = TypeVar("T")


class RequestMapper:
    """Runs one provider call inside a valid session.

    A call rejected as unauthorized drops the token it used. With
    ``retry_on_expired`` the call is then re-run once on a fresh token;
    otherwise, or when the second attempt is rejected too, the caller gets
    ``RetriableAuthError`` and the next request starts from a clean session.
    """

    def __init__(
        self,
        session: StorageSession,
        authorizer: Authorizer,
        resolver: BucketResolver,
        *,
        bucket_name: str | None,
        retry_on_expired: bool = True,
    ) -> None:
        self._session = session
        self._authorizer = authorizer
        self._resolver = resolver
        self._bucket_name = bucket_name
        self._retry_on_expired = retry_on_expired

    async def context(self) -> AuthorizedContext:
        bucket_id = await self._resolver.resolve_bucket_id(self._bucket_name)
        # The token may have been dropped by another request while the bucket
        # lookup was suspended.
        await self._authorizer.ensure_authorized()

        session = self._session
        return AuthorizedContext(
            token=session.token or "",
            api_url=session.api_url or "",
            download_url=session.download_url or "",
            account_id=session.account_id or "",
            bucket_id=bucket_id,
        )

    async def run(self, operation: Callable[[AuthorizedContext], Awaitable[T]], *, label: str = "storage call") -> T:
        attempts = 2 if self._retry_on_expired else 1
        attempt = 1
        while True:
            token: str | None = None
            try:
                # A first bucket lookup can be rejected too; the resolver drops its token.
                ctx = await self.context()
                token = ctx.token
                return await operation(ctx)
            except UnauthorizedSignal as exc:
                if token is not None:
                    self._authorizer.invalidate(token)
                if attempt < attempts:
                    logger.info("%s rejected as unauthorized, retrying with a fresh token", label)
                    attempt += 1
                    continue
                logger.warning("%s rejected as unauthorized: %s", label, exc)
                raise RetriableAuthError(error=str(exc)) from exc
