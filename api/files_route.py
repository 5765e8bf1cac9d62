from __future__ import annotations

import logging
from urllib.parse import quote

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from core.errors import upload_too_large, validation_failed
from core.response_envelope import document_deleted, document_response
from core.settings import get_settings
from core.storage.paths import display_name
from schemas.file_schema import CreateFolderRequest
from services.file_service import (
    DEFAULT_CONTENT_TYPE,
    create_folder,
    delete_path,
    download_file,
    list_files,
    upload_file,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Files"])


def content_disposition(file_name: str) -> str:
    try:
        file_name.encode("ascii")
    except UnicodeEncodeError:
        fallback = file_name.encode("ascii", "replace").decode("ascii").replace('"', "")
        return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(file_name)}"
    escaped = file_name.replace("\\", "\\\\").replace('"', '\\"')
    return f'attachment; filename="{escaped}"'


async def _discard_upload(file: UploadFile) -> None:
    try:
        await file.close()
    except OSError as exc:
        logger.warning("Could not discard temporary upload %s: %s", file.filename, exc)


@router.get("/files")
@document_response(
    message="Files listed successfully",
    success_example={
        "prefix": "docs/",
        "files": [
            {"name": "x.txt", "path": "/docs/x.txt", "type": "text/plain", "size": 12, "isFolder": False},
            {"name": "reports", "path": "/docs/reports/", "type": "folder", "size": 0, "isFolder": True},
        ],
    },
    response_codes={401: "Storage authorization failed", 502: "Storage provider error"},
)
async def list_objects(prefix: str | None = Query(default=None, description="Folder to list, root when omitted.")):
    listing = await list_files(prefix)
    return listing.model_dump(by_alias=True)


@router.get("/download")
async def download_object(path: str | None = Query(default=None, description="Full path of the file.")):
    if not path:
        raise validation_failed("A file path is required", field="path")

    info, stream = await download_file(path)
    headers = {"Content-Disposition": content_disposition(display_name(info.file_name))}
    content_length = info.content_length or stream.content_length
    if content_length is not None:
        headers["Content-Length"] = str(content_length)

    return StreamingResponse(
        stream.body,
        media_type=info.content_type or stream.content_type or DEFAULT_CONTENT_TYPE,
        headers=headers,
        background=BackgroundTask(stream.close),
    )


@router.post("/upload")
@document_response(
    message="File uploaded successfully",
    success_example={
        "file": {
            "name": "x.txt",
            "path": "/docs/x.txt",
            "type": "text/plain",
            "size": 12,
            "isFolder": False,
            "lastModified": 1700000000000,
        }
    },
    response_codes={400: "Missing file or destination path", 413: "File too large"},
)
async def upload_object(
    request: Request,
    file: UploadFile | None = File(default=None),
    path: str | None = Form(default=None),
):
    if file is None:
        raise validation_failed("No file was provided", field="file")

    try:
        if path is None:
            # Empty optional form fields arrive as None; an empty path is the bucket root.
            raw_path = (await request.form()).get("path")
            path = raw_path if isinstance(raw_path, str) else None
        if path is None:
            raise validation_failed("A destination folder path is required", field="path")

        max_upload_bytes = get_settings().max_upload_bytes
        data = await file.read(max_upload_bytes + 1)
        if len(data) > max_upload_bytes:
            raise upload_too_large(max_upload_bytes)

        uploaded = await upload_file(
            folder=path,
            file_name=file.filename or "",
            content_type=file.content_type,
            data=data,
        )
    finally:
        await _discard_upload(file)

    return {"file": uploaded.model_dump(by_alias=True)}


@router.post("/createFolder")
@document_response(
    message="Folder created successfully",
    success_example={
        "folder": {"name": "reports", "path": "/reports", "type": "folder", "size": 0, "isFolder": True}
    },
)
async def create_folder_object(payload: CreateFolderRequest):
    folder = await create_folder(parent_path=payload.parent_path, folder_name=payload.folder_name)
    return {"folder": folder.model_dump(by_alias=True)}


@router.delete("/delete")
@document_deleted(message="File deleted successfully", success_example={"path": "docs/x.txt", "deletedCount": 1})
async def delete_object(
    path: str | None = Query(default=None, description="File or folder path."),
    is_folder: bool = Query(default=False, alias="isFolder"),
):
    if not path:
        raise validation_failed("A file or folder path is required", field="path")

    result = await delete_path(path=path, is_folder=is_folder)
    payload = result.model_dump(by_alias=True)
    if is_folder:
        payload["message"] = f"Folder and {result.deleted_count} files deleted successfully"
    return payload
