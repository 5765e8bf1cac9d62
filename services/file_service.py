from __future__ import annotations

import logging
import time
from functools import partial

from core.errors import NotFoundError, PartialFailure, StorageError, validation_failed
from core.storage import StorageManager
from core.storage.paths import (
    clean_folder_name,
    display_name,
    folder_prefix,
    is_hidden,
    join_key,
    normalize_path,
    placeholder_key,
)
from core.storage.types import AuthorizedContext, DownloadStream, FileAction, RemoteFile
from schemas.file_schema import DeleteFailure, DeleteResultOut, FileEntryOut, FileListOut

logger = logging.getLogger(__name__)

LIST_PAGE_SIZE = 1000
DEFAULT_CONTENT_TYPE = "application/octet-stream"
FOLDER_PLACEHOLDER_CONTENT_TYPE = "application/x-empty"


def _manager() -> StorageManager:
    return StorageManager.get_instance()


def _file_entry(item: RemoteFile) -> FileEntryOut:
    return FileEntryOut(
        name=display_name(item.file_name),
        path=f"/{item.file_name}",
        type=item.content_type,
        size=item.content_length,
        is_folder=False,
        last_modified=item.upload_timestamp,
    )


def _folder_entry(key: str) -> FileEntryOut:
    return FileEntryOut(
        name=display_name(key),
        path=f"/{key}",
        type="folder",
        size=0,
        is_folder=True,
    )


async def _list_all(manager: StorageManager, *, prefix: str, delimiter: str | None = None) -> list[RemoteFile]:
    files: list[RemoteFile] = []
    start_file_name: str | None = None
    while True:
        listing = await manager.mapper.run(
            partial(
                manager.api.list_file_names,
                prefix=prefix,
                delimiter=delimiter,
                start_file_name=start_file_name,
                max_file_count=LIST_PAGE_SIZE,
            ),
            label="list_file_names",
        )
        files.extend(listing.files)
        if not listing.next_file_name:
            return files
        start_file_name = listing.next_file_name


async def _find_file(manager: StorageManager, key: str) -> RemoteFile:
    listing = await manager.mapper.run(
        partial(
            manager.api.list_file_names,
            prefix=key,
            start_file_name=key,
            max_file_count=1,
        ),
        label="list_file_names",
    )
    for item in listing.files:
        if item.file_name == key and item.action == FileAction.UPLOAD and item.file_id:
            return item
    raise NotFoundError("File", key, message="File not found", path=key)


async def _put_object(manager: StorageManager, *, key: str, content_type: str, data: bytes) -> RemoteFile:
    async def _upload(ctx: AuthorizedContext) -> RemoteFile:
        # Upload URLs are single-use per request, so a retried upload fetches a new one.
        target = await manager.api.get_upload_url(ctx)
        return await manager.api.upload_file(target, file_name=key, content_type=content_type, data=data)

    return await manager.mapper.run(_upload, label="upload_file")


async def list_files(prefix: str | None) -> FileListOut:
    manager = _manager()
    listing_prefix = folder_prefix(prefix)
    logger.info("Listing files with prefix %r", listing_prefix)

    remote_files = await _list_all(manager, prefix=listing_prefix, delimiter="/")

    files: list[FileEntryOut] = []
    folders: list[FileEntryOut] = []
    for item in remote_files:
        if item.action == FileAction.FOLDER:
            folders.append(_folder_entry(item.file_name))
        elif item.action == FileAction.UPLOAD and not is_hidden(item.file_name):
            files.append(_file_entry(item))

    return FileListOut(prefix=listing_prefix, files=files + folders)


async def download_file(path: str) -> tuple[RemoteFile, DownloadStream]:
    manager = _manager()
    key = normalize_path(path)
    if not key:
        raise validation_failed("A file path is required", field="path")

    logger.info("Downloading %r", key)
    info = await _find_file(manager, key)
    stream = await manager.mapper.run(
        partial(manager.api.download_file_by_id, file_id=info.file_id or ""),
        label="download_file_by_id",
    )
    return info, stream


async def upload_file(*, folder: str, file_name: str, content_type: str | None, data: bytes) -> FileEntryOut:
    name = display_name(file_name.replace("\\", "/"))
    if not name:
        raise validation_failed("A file name is required", field="file")

    manager = _manager()
    key = join_key(folder, name)
    resolved_type = content_type or DEFAULT_CONTENT_TYPE
    logger.info("Uploading %r (%d bytes)", key, len(data))

    remote = await _put_object(manager, key=key, content_type=resolved_type, data=data)
    return FileEntryOut(
        name=name,
        path=f"/{key}",
        type=resolved_type,
        size=len(data),
        is_folder=False,
        last_modified=remote.upload_timestamp or int(time.time() * 1000),
    )


async def create_folder(*, parent_path: str | None, folder_name: str) -> FileEntryOut:
    name = clean_folder_name(folder_name)
    if not name:
        raise validation_failed("A folder name is required", field="folderName")

    manager = _manager()
    folder_key = join_key(parent_path, name)
    logger.info("Creating folder %r", folder_key)

    await _put_object(
        manager,
        key=placeholder_key(folder_key),
        content_type=FOLDER_PLACEHOLDER_CONTENT_TYPE,
        data=b"",
    )
    return _folder_entry(folder_key)


async def _delete_version(manager: StorageManager, item: RemoteFile) -> None:
    await manager.mapper.run(
        partial(manager.api.delete_file_version, file_id=item.file_id or "", file_name=item.file_name),
        label="delete_file_version",
    )


async def delete_path(*, path: str, is_folder: bool) -> DeleteResultOut:
    manager = _manager()
    key = normalize_path(path)
    if not key.strip("/"):
        raise validation_failed("A file or folder path is required", field="path")

    if not is_folder:
        logger.info("Deleting file %r", key)
        item = await _find_file(manager, key)
        await _delete_version(manager, item)
        return DeleteResultOut(path=key, deleted_count=1)

    prefix = folder_prefix(key)
    logger.info("Deleting folder %r", prefix)
    targets = [
        item
        for item in await _list_all(manager, prefix=prefix)
        if item.action == FileAction.UPLOAD and item.file_id
    ]
    if not targets:
        raise NotFoundError("Folder", prefix, message="Folder not found or empty", path=key)

    deleted_count = 0
    failures: list[DeleteFailure] = []
    for item in targets:
        try:
            await _delete_version(manager, item)
            deleted_count += 1
        except StorageError as exc:
            logger.error("Failed to delete %s: %s", item.file_name, exc)
            failures.append(DeleteFailure(file_name=item.file_name, error=exc.error or exc.message))

    if failures:
        raise PartialFailure(
            path=key,
            deleted_count=deleted_count,
            failures=[failure.model_dump(by_alias=True) for failure in failures],
        )
    return DeleteResultOut(path=key, deleted_count=deleted_count)
