"""Shared fixtures: an in-memory storage provider and a manager wired to it."""

from __future__ import annotations

import asyncio
from typing import AsyncIterator

import pytest

from core.errors import ProviderError, UnauthorizedSignal
from core.storage import StorageManager
from core.storage.types import (
    AccountAuthorization,
    AuthorizedContext,
    BucketInfo,
    DownloadStream,
    FileAction,
    FileListing,
    RemoteFile,
    UploadTarget,
)

BUCKET_NAME = "media"
BUCKET_ID = "bucket-media"


class FakeClock:
    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeStorageApi:
    provider_name = "fake"

    def __init__(self) -> None:
        self.objects: dict[str, RemoteFile] = {}
        self.contents: dict[str, bytes] = {}
        self.buckets = [
            BucketInfo(bucket_id="bucket-upper", bucket_name="Media"),
            BucketInfo(bucket_id=BUCKET_ID, bucket_name=BUCKET_NAME),
        ]
        self.allowed: dict[str, str] = {}
        self.calls: list[str] = []
        self.valid_tokens: set[str] = set()
        self.authorize_error: Exception | None = None
        self.authorize_delay = 0.0
        self.fail_deletes: set[str] = set()
        self.closed = False
        self._issued = 0
        self._file_ids = 0

    def expire_tokens(self) -> None:
        self.valid_tokens.clear()

    def count(self, name: str) -> int:
        return self.calls.count(name)

    def _check(self, token: str) -> None:
        if token not in self.valid_tokens:
            raise UnauthorizedSignal(
                http_status=401,
                provider_code="expired_auth_token",
                provider_message="Authorization token has expired",
            )

    async def authorize_account(self, *, key_id: str, application_key: str) -> AccountAuthorization:
        self.calls.append("authorize_account")
        if self.authorize_delay:
            await asyncio.sleep(self.authorize_delay)
        if self.authorize_error is not None:
            raise self.authorize_error
        self._issued += 1
        token = f"token-{self._issued}"
        self.valid_tokens.add(token)
        return AccountAuthorization(
            account_id="account-1",
            authorization_token=token,
            api_url="https://api.example.test",
            download_url="https://download.example.test",
            allowed=dict(self.allowed),
        )

    async def list_buckets(
        self,
        *,
        api_url: str,
        token: str,
        account_id: str,
        bucket_name: str | None = None,
    ) -> list[BucketInfo]:
        self.calls.append("list_buckets")
        self._check(token)
        return list(self.buckets)

    async def list_file_names(
        self,
        ctx: AuthorizedContext,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        start_file_name: str | None = None,
        max_file_count: int = 1000,
    ) -> FileListing:
        self.calls.append("list_file_names")
        self._check(ctx.token)
        assert ctx.bucket_id == BUCKET_ID

        entries: list[RemoteFile] = []
        seen_folders: set[str] = set()
        for name in sorted(self.objects):
            if not name.startswith(prefix):
                continue
            if start_file_name is not None and name < start_file_name:
                continue
            rest = name[len(prefix):]
            if delimiter and delimiter in rest:
                folder = prefix + rest.split(delimiter)[0] + delimiter
                if folder not in seen_folders:
                    seen_folders.add(folder)
                    entries.append(RemoteFile(file_name=folder, action=FileAction.FOLDER))
                continue
            entries.append(self.objects[name])

        page = entries[:max_file_count]
        next_file_name = entries[max_file_count].file_name if len(entries) > max_file_count else None
        return FileListing(files=page, next_file_name=next_file_name)

    async def get_upload_url(self, ctx: AuthorizedContext) -> UploadTarget:
        self.calls.append("get_upload_url")
        self._check(ctx.token)
        return UploadTarget(upload_url="https://upload.example.test", authorization_token=ctx.token)

    async def upload_file(self, target: UploadTarget, *, file_name: str, content_type: str, data: bytes) -> RemoteFile:
        self.calls.append("upload_file")
        self._check(target.authorization_token)
        return self.put(file_name, data, content_type=content_type)

    async def download_file_by_id(self, ctx: AuthorizedContext, *, file_id: str) -> DownloadStream:
        self.calls.append("download_file_by_id")
        self._check(ctx.token)
        item = next(item for item in self.objects.values() if item.file_id == file_id)
        payload = self.contents[item.file_name]

        async def _body() -> AsyncIterator[bytes]:
            yield payload

        async def _close() -> None:
            return None

        return DownloadStream(
            content_type=item.content_type,
            content_length=len(payload),
            body=_body(),
            close=_close,
        )

    async def delete_file_version(self, ctx: AuthorizedContext, *, file_id: str, file_name: str) -> None:
        self.calls.append("delete_file_version")
        self._check(ctx.token)
        if file_name in self.fail_deletes:
            raise ProviderError(
                http_status=400,
                provider_code="bad_request",
                provider_message=f"cannot delete {file_name}",
            )
        self.objects.pop(file_name, None)
        self.contents.pop(file_name, None)

    async def aclose(self) -> None:
        self.closed = True

    def put(self, file_name: str, data: bytes = b"data", *, content_type: str = "text/plain") -> RemoteFile:
        self._file_ids += 1
        item = RemoteFile(
            file_name=file_name,
            action=FileAction.UPLOAD,
            file_id=f"file-{self._file_ids}",
            content_type=content_type,
            content_length=len(data),
            upload_timestamp=1700000000000 + self._file_ids,
        )
        self.objects[file_name] = item
        self.contents[file_name] = data
        return item


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def fake_api() -> FakeStorageApi:
    return FakeStorageApi()


def build_manager(fake_api: FakeStorageApi, clock: FakeClock, **overrides) -> StorageManager:
    options = {
        "key_id": "key-id",
        "application_key": "app-key",
        "bucket_name": BUCKET_NAME,
        "cooldown_seconds": 30.0,
        "retry_on_expired": True,
        "clock": clock,
    }
    options.update(overrides)
    return StorageManager(fake_api, **options)


@pytest.fixture
def make_manager(fake_api: FakeStorageApi, clock: FakeClock):
    def _make(**overrides) -> StorageManager:
        return build_manager(fake_api, clock, **overrides)

    return _make


@pytest.fixture
def storage_manager(fake_api: FakeStorageApi, clock: FakeClock):
    manager = StorageManager.configure(build_manager(fake_api, clock))
    yield manager
    StorageManager._instance = None
