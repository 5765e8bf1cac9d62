from __future__ import annotations

import re

FOLDER_PLACEHOLDER = ".folder"

_LEADING_SLASHES = re.compile(r"^/+")
_REPEATED_SLASHES = re.compile(r"/{2,}")


def normalize_path(path: str | None) -> str:
    """Strip leading slashes and collapse repeated ones.

    >>> normalize_path("/a//b/")
    'a/b/'
    """
    normalized = path or ""
    normalized = _LEADING_SLASHES.sub("", normalized)
    return _REPEATED_SLASHES.sub("/", normalized)


def folder_prefix(path: str | None) -> str:
    normalized = normalize_path(path).rstrip("/")
    return f"{normalized}/" if normalized else ""


def join_key(folder: str | None, name: str) -> str:
    normalized = normalize_path(folder).rstrip("/")
    return f"{normalized}/{name}" if normalized else name


def clean_folder_name(name: str) -> str:
    return name.replace("/", "").strip()


def placeholder_key(folder: str) -> str:
    return join_key(folder, FOLDER_PLACEHOLDER)


def display_name(key: str) -> str:
    segments = [segment for segment in key.split("/") if segment]
    return segments[-1] if segments else ""


def is_hidden(key: str) -> bool:
    """Folder placeholders anywhere and dotfiles at the bucket root."""
    return key.endswith(f"/{FOLDER_PLACEHOLDER}") or key.startswith(".")
