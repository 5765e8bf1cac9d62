from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FileEntryOut(BaseModel):
    name: str
    path: str
    type: str | None = None
    size: int = 0
    is_folder: bool = Field(default=False, alias="isFolder")
    last_modified: int | None = Field(default=None, alias="lastModified")

    model_config = ConfigDict(populate_by_name=True)


class FileListOut(BaseModel):
    prefix: str
    files: list[FileEntryOut]


class CreateFolderRequest(BaseModel):
    parent_path: str | None = Field(default="", alias="parentPath")
    folder_name: str = Field(alias="folderName", min_length=1)

    model_config = ConfigDict(populate_by_name=True)


class DeleteFailure(BaseModel):
    file_name: str = Field(alias="fileName")
    error: str

    model_config = ConfigDict(populate_by_name=True)


class DeleteResultOut(BaseModel):
    path: str
    deleted_count: int = Field(alias="deletedCount")

    model_config = ConfigDict(populate_by_name=True)
