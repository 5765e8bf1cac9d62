from __future__ import annotations

import time
from threading import Lock
from typing import Callable

from core.settings import get_settings
from core.storage.authorizer import Authorizer
from core.storage.b2_provider import B2StorageApi
from core.storage.bucket_resolver import BucketResolver
from core.storage.provider import StorageApi
from core.storage.request_mapper import RequestMapper
from core.storage.session import StorageSession


class StorageManager:
    _instance: "StorageManager | None" = None
    _lock = Lock()

    def __init__(
        self,
        api: StorageApi,
        *,
        key_id: str | None,
        application_key: str | None,
        bucket_name: str | None,
        cooldown_seconds: float = 30.0,
        retry_on_expired: bool = True,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._api = api
        self._bucket_name = bucket_name
        self.session = StorageSession()
        self.authorizer = Authorizer(
            self.session,
            api,
            key_id=key_id,
            application_key=application_key,
            cooldown_seconds=cooldown_seconds,
            clock=clock,
        )
        self.resolver = BucketResolver(self.session, self.authorizer, api)
        self.mapper = RequestMapper(
            self.session,
            self.authorizer,
            self.resolver,
            bucket_name=bucket_name,
            retry_on_expired=retry_on_expired,
        )

    @classmethod
    def configure(cls, manager: "StorageManager") -> "StorageManager":
        with cls._lock:
            cls._instance = manager
            return cls._instance

    @classmethod
    def configure_from_settings(cls) -> "StorageManager":
        settings = get_settings()
        api = B2StorageApi(
            auth_base_url=settings.b2_api_url,
            request_timeout=settings.b2_request_timeout_seconds,
            transfer_timeout=settings.b2_transfer_timeout_seconds,
        )
        return cls.configure(
            cls(
                api,
                key_id=settings.b2_key_id,
                application_key=settings.b2_application_key,
                bucket_name=settings.b2_bucket_name,
                cooldown_seconds=settings.b2_auth_cooldown_seconds,
                retry_on_expired=settings.b2_retry_on_expired,
            )
        )

    @classmethod
    def get_instance(cls) -> "StorageManager":
        if cls._instance is None:
            return cls.configure_from_settings()
        return cls._instance

    @classmethod
    async def shutdown(cls) -> None:
        with cls._lock:
            instance, cls._instance = cls._instance, None
        if instance is not None:
            await instance.api.aclose()

    @property
    def api(self) -> StorageApi:
        return self._api

    @property
    def bucket_name(self) -> str | None:
        return self._bucket_name
