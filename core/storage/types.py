from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, AsyncIterator, Awaitable, Callable


class SessionState(str, Enum):
    UNAUTHENTICATED = "unauthenticated"
    AUTHENTICATING = "authenticating"
    AUTHENTICATED = "authenticated"


class FileAction(str, Enum):
    UPLOAD = "upload"
    FOLDER = "folder"
    HIDE = "hide"
    START = "start"


@dataclass(frozen=True)
class AccountAuthorization:
    account_id: str
    authorization_token: str
    api_url: str
    download_url: str
    allowed: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class AuthorizedContext:
    """Everything a single provider call needs, captured at call time."""

    token: str
    api_url: str
    download_url: str
    account_id: str
    bucket_id: str


@dataclass(frozen=True)
class BucketInfo:
    bucket_id: str
    bucket_name: str


@dataclass(frozen=True)
class RemoteFile:
    file_name: str
    action: FileAction
    file_id: str | None = None
    content_type: str | None = None
    content_length: int = 0
    upload_timestamp: int | None = None


@dataclass(frozen=True)
class FileListing:
    files: list[RemoteFile]
    next_file_name: str | None = None


@dataclass(frozen=True)
class UploadTarget:
    upload_url: str
    authorization_token: str


@dataclass
class DownloadStream:
    content_type: str | None
    content_length: int | None
    body: AsyncIterator[bytes]
    close: Callable[[], Awaitable[None]]
