from core.storage.manager import StorageManager
from core.storage.session import StorageSession
from core.storage.types import AuthorizedContext, RemoteFile, SessionState

__all__ = [
    "AuthorizedContext",
    "RemoteFile",
    "SessionState",
    "StorageManager",
    "StorageSession",
]
