from __future__ import annotations

import hashlib
import logging
from typing import Any
from urllib.parse import quote

import httpx

from core.errors import ProviderError, TransportError, UnauthorizedSignal
from core.settings import DEFAULT_B2_API_URL
from core.storage.provider import StorageApi
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

logger = logging.getLogger(__name__)

B2_API_PREFIX = "/b2api/v2"
UNAUTHORIZED_CODES = {"unauthorized", "bad_auth_token", "expired_auth_token"}


def _json_or_empty(response: httpx.Response) -> dict[str, Any]:
    try:
        payload = response.json()
    except ValueError:
        return {}
    return payload if isinstance(payload, dict) else {}


def _raise_for_b2_status(response: httpx.Response, *, token_call: bool = True) -> None:
    if response.status_code < 400:
        return

    payload = _json_or_empty(response)
    provider_code = payload.get("code")
    provider_message = payload.get("message") or response.reason_phrase or None

    # Login failures are bad credentials, not an expired session.
    if token_call and (response.status_code == 401 or provider_code in UNAUTHORIZED_CODES):
        raise UnauthorizedSignal(
            http_status=response.status_code,
            provider_code=provider_code,
            provider_message=provider_message,
        )
    raise ProviderError(
        http_status=response.status_code,
        provider_code=provider_code,
        provider_message=provider_message,
    )


def _remote_file(item: dict[str, Any]) -> RemoteFile:
    raw_action = str(item.get("action") or FileAction.UPLOAD.value)
    try:
        action = FileAction(raw_action)
    except ValueError:
        action = FileAction.UPLOAD
    return RemoteFile(
        file_name=str(item.get("fileName") or ""),
        action=action,
        file_id=item.get("fileId"),
        content_type=item.get("contentType"),
        content_length=int(item.get("contentLength") or 0),
        upload_timestamp=item.get("uploadTimestamp"),
    )


class B2StorageApi(StorageApi):
    provider_name = "b2"

    def __init__(
        self,
        *,
        auth_base_url: str = DEFAULT_B2_API_URL,
        request_timeout: float = 15.0,
        transfer_timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._auth_base_url = auth_base_url.rstrip("/")
        self._transfer_timeout = transfer_timeout
        self._client = httpx.AsyncClient(timeout=request_timeout, transport=transport)

    async def _send(
        self,
        request: httpx.Request,
        *,
        stream: bool = False,
        auth: httpx.Auth | None = None,
    ) -> httpx.Response:
        try:
            return await self._client.send(request, stream=stream, auth=auth)
        except httpx.TimeoutException as err:
            raise TransportError(f"{request.method} {request.url.path} timed out", timeout=True) from err
        except httpx.HTTPError as err:
            raise TransportError(f"{request.method} {request.url.path} failed: {err}") from err

    async def _post_api(self, api_url: str, endpoint: str, token: str, payload: dict[str, Any]) -> dict[str, Any]:
        request = self._client.build_request(
            "POST",
            f"{api_url}{B2_API_PREFIX}/{endpoint}",
            json={key: value for key, value in payload.items() if value is not None},
            headers={"Authorization": token},
        )
        response = await self._send(request)
        _raise_for_b2_status(response)
        return _json_or_empty(response)

    async def authorize_account(self, *, key_id: str, application_key: str) -> AccountAuthorization:
        request = self._client.build_request(
            "GET",
            f"{self._auth_base_url}{B2_API_PREFIX}/b2_authorize_account",
        )
        response = await self._send(request, auth=httpx.BasicAuth(key_id, application_key))
        _raise_for_b2_status(response, token_call=False)

        payload = _json_or_empty(response)
        missing = [
            name for name in ("accountId", "authorizationToken", "apiUrl", "downloadUrl") if not payload.get(name)
        ]
        if missing:
            raise ProviderError(
                http_status=response.status_code,
                provider_code="invalid_response",
                provider_message=f"Authorization reply missing {', '.join(missing)}",
            )

        allowed = payload.get("allowed")
        return AccountAuthorization(
            account_id=str(payload["accountId"]),
            authorization_token=str(payload["authorizationToken"]),
            api_url=str(payload["apiUrl"]).rstrip("/"),
            download_url=str(payload["downloadUrl"]).rstrip("/"),
            allowed=allowed if isinstance(allowed, dict) else {},
        )

    async def list_buckets(
        self,
        *,
        api_url: str,
        token: str,
        account_id: str,
        bucket_name: str | None = None,
    ) -> list[BucketInfo]:
        payload = await self._post_api(
            api_url,
            "b2_list_buckets",
            token,
            {"accountId": account_id, "bucketName": bucket_name},
        )
        buckets = payload.get("buckets")
        if not isinstance(buckets, list):
            return []
        return [
            BucketInfo(bucket_id=str(item["bucketId"]), bucket_name=str(item["bucketName"]))
            for item in buckets
            if isinstance(item, dict) and item.get("bucketId") and item.get("bucketName")
        ]

    async def list_file_names(
        self,
        ctx: AuthorizedContext,
        *,
        prefix: str = "",
        delimiter: str | None = None,
        start_file_name: str | None = None,
        max_file_count: int = 1000,
    ) -> FileListing:
        payload = await self._post_api(
            ctx.api_url,
            "b2_list_file_names",
            ctx.token,
            {
                "bucketId": ctx.bucket_id,
                "prefix": prefix,
                "delimiter": delimiter,
                "startFileName": start_file_name,
                "maxFileCount": max_file_count,
            },
        )
        files = payload.get("files")
        return FileListing(
            files=[_remote_file(item) for item in files if isinstance(item, dict)] if isinstance(files, list) else [],
            next_file_name=payload.get("nextFileName") or None,
        )

    async def get_upload_url(self, ctx: AuthorizedContext) -> UploadTarget:
        payload = await self._post_api(ctx.api_url, "b2_get_upload_url", ctx.token, {"bucketId": ctx.bucket_id})
        return UploadTarget(
            upload_url=str(payload.get("uploadUrl") or ""),
            authorization_token=str(payload.get("authorizationToken") or ""),
        )

    async def upload_file(
        self,
        target: UploadTarget,
        *,
        file_name: str,
        content_type: str,
        data: bytes,
    ) -> RemoteFile:
        request = self._client.build_request(
            "POST",
            target.upload_url,
            content=data,
            headers={
                "Authorization": target.authorization_token,
                "X-Bz-File-Name": quote(file_name, safe="/"),
                "Content-Type": content_type,
                "X-Bz-Content-Sha1": hashlib.sha1(data).hexdigest(),
            },
            timeout=self._transfer_timeout,
        )
        response = await self._send(request)
        _raise_for_b2_status(response)
        logger.debug("Uploaded %s (%d bytes)", file_name, len(data))
        return _remote_file(_json_or_empty(response))

    async def download_file_by_id(self, ctx: AuthorizedContext, *, file_id: str) -> DownloadStream:
        request = self._client.build_request(
            "GET",
            f"{ctx.download_url}{B2_API_PREFIX}/b2_download_file_by_id",
            params={"fileId": file_id},
            headers={"Authorization": ctx.token},
            timeout=self._transfer_timeout,
        )
        response = await self._send(request, stream=True)
        if response.status_code >= 400:
            try:
                await response.aread()
            finally:
                await response.aclose()
            _raise_for_b2_status(response)

        raw_length = response.headers.get("content-length")
        return DownloadStream(
            content_type=response.headers.get("content-type"),
            content_length=int(raw_length) if raw_length and raw_length.isdigit() else None,
            body=response.aiter_bytes(),
            close=response.aclose,
        )

    async def delete_file_version(self, ctx: AuthorizedContext, *, file_id: str, file_name: str) -> None:
        await self._post_api(
            ctx.api_url,
            "b2_delete_file_version",
            ctx.token,
            {"fileId": file_id, "fileName": file_name},
        )

    async def aclose(self) -> None:
        await self._client.aclose()
