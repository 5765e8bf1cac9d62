from __future__ import annotations

import os

from fastapi import APIRouter

from core.response_envelope import document_response
from core.storage import StorageManager

router = APIRouter(prefix="/api", tags=["Diagnostics"])


def _mask(value: str | None) -> str:
    return f"{value[:4]}..." if value else "not set"


@router.get("/status")
@document_response(
    message="Storage session status",
    success_example={
        "status": "authorized",
        "provider": "b2",
        "bucketName": "my-bucket",
        "session": {"state": "authenticated", "authorized": True, "acquiring": False, "bucketId": "abc"},
    },
)
async def storage_status():
    manager = StorageManager.get_instance()
    return {
        "status": "authorized" if manager.session.is_authorized else "unauthorized",
        "provider": manager.api.provider_name,
        "bucketName": manager.bucket_name,
        "session": manager.authorizer.status(),
    }


@router.get("/env")
@document_response(message="Configuration diagnostics")
async def environment_summary():
    return {
        "B2_KEY_ID": _mask(os.getenv("B2_KEY_ID")),
        "B2_ACCOUNT_ID": _mask(os.getenv("B2_ACCOUNT_ID")),
        "B2_APPLICATION_KEY": "present" if os.getenv("B2_APPLICATION_KEY") else "not set",
        "B2_BUCKET_NAME": os.getenv("B2_BUCKET_NAME"),
    }


@router.get("/auth-test")
@document_response(message="Authorization succeeded", response_codes={401: "Authorization failed"})
async def authorization_test():
    manager = StorageManager.get_instance()
    await manager.authorizer.force_reauthorize()
    return {
        "accountId": manager.session.account_id,
        "bucketInfo": manager.session.allowed,
    }
