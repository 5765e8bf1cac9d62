from __future__ import annotations

from typing import Protocol

from core.storage.types import (
    AccountAuthorization,
    AuthorizedContext,
    BucketInfo,
    DownloadStream,
    FileListing,
    RemoteFile,
    UploadTarget,
)


class StorageApi(Protocol):
    """Raw calls against the object-storage provider.

    Implementations raise ``UnauthorizedSignal`` when the provider rejects
    the bearer token, ``ProviderError`` for any other non-2xx reply and
    ``TransportError`` when the provider cannot be reached.
    """

    provider_name: str

    async def authorize_account(self, *, key_id: str, application_key: str) -> AccountAuthorization:
        ...

    async def list_buckets(
        self,
        *,
        api_url: str,
        token: str,
        account_id: str,
        bucket_name: str | None = None,
    ) -> list[BucketInfo]:
        ...

    async def list_file_names(
        self,
        ctx: AuthorizedContext,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        start_file_name: str | None = None,
        max_file_count: int = 1000,
    ) -> FileListing:
        ...

    async def get_upload_url(self, ctx: AuthorizedContext) -> UploadTarget:
        ...

    async def upload_file(
        self,
        target: UploadTarget,
        *,
        file_name: str,
        content_type: str,
        data: bytes,
    ) -> RemoteFile:
        ...

    async def download_file_by_id(self, ctx: AuthorizedContext, *, file_id: str) -> DownloadStream:
        ...

    async def delete_file_version(self, ctx: AuthorizedContext, *, file_id: str, file_name: str) -> None:
        ...

    async def aclose(self) -> None:
        ...
