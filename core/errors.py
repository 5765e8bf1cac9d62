from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    RESOURCE_NOT_FOUND = "RESOURCE_NOT_FOUND"
    VALIDATION_FAILED = "VALIDATION_FAILED"
    UPLOAD_TOO_LARGE = "UPLOAD_TOO_LARGE"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    STORAGE_CONFIG_MISSING = "STORAGE_CONFIG_MISSING"
    STORAGE_AUTH_FAILED = "STORAGE_AUTH_FAILED"
    STORAGE_SESSION_EXPIRED = "STORAGE_SESSION_EXPIRED"
    STORAGE_PARTIAL_FAILURE = "STORAGE_PARTIAL_FAILURE"
    STORAGE_TRANSPORT_ERROR = "STORAGE_TRANSPORT_ERROR"
    STORAGE_PROVIDER_ERROR = "STORAGE_PROVIDER_ERROR"


class AppException(HTTPException):
    def __init__(
        self,
        *,
        status_code: int,
        code: ErrorCode,
        message: str,
        details: Any | None = None,
        error: str | None = None,
        extra: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.code = code
        self.message = message
        self.error = error
        detail = {
            "message": message,
            "code": code.value,
            "details": details,
            "error": error,
            "extra": extra or {},
        }
        super().__init__(status_code=status_code, detail=detail, headers=headers)

    def __str__(self) -> str:
        if self.error and self.error != self.message:
            return f"{self.message}: {self.error}"
        return self.message


class StorageError(AppException):
    """Base class for failures talking to the object-storage provider."""


class ConfigError(StorageError):
    def __init__(self, missing: list[str]) -> None:
        super().__init__(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            code=ErrorCode.STORAGE_CONFIG_MISSING,
            message="Storage credentials are not configured",
            details={"missing": missing},
            error=f"Missing environment variables: {', '.join(missing)}",
        )
        self.missing = missing


class AuthError(StorageError):
    def __init__(self, message: str = "Storage authorization failed", *, error: str | None = None, retry_after: float | None = None) -> None:
        headers = None
        details = None
        if retry_after is not None:
            seconds = max(int(retry_after + 0.999), 0)
            headers = {"Retry-After": str(seconds)}
            details = {"retry_after_seconds": seconds}
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ErrorCode.STORAGE_AUTH_FAILED,
            message=message,
            details=details,
            error=error or message,
            headers=headers,
        )
        self.retry_after = retry_after


class RetriableAuthError(StorageError):
    def __init__(self, error: str | None = None) -> None:
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            code=ErrorCode.STORAGE_SESSION_EXPIRED,
            message="Storage session expired, please retry the request",
            error=error,
        )


class NotFoundError(StorageError):
    def __init__(
        self,
        resource: str,
        resource_id: str | None = None,
        *,
        message: str | None = None,
        path: str | None = None,
    ) -> None:
        details = {"resource": resource}
        if resource_id is not None:
            details["resource_id"] = resource_id
        extra = {"path": path} if path is not None else None
        text = message or f"{resource} not found"
        super().__init__(
            status_code=status.HTTP_404_NOT_FOUND,
            code=ErrorCode.RESOURCE_NOT_FOUND,
            message=text,
            details=details,
            error=text if resource_id is None else f"{text}: {resource_id}",
            extra=extra,
        )


class PartialFailure(StorageError):
    def __init__(self, *, path: str, deleted_count: int, failures: list[dict[str, str]]) -> None:
        message = f"Partial deletion: {deleted_count} files deleted, {len(failures)} failed"
        super().__init__(
            status_code=status.HTTP_207_MULTI_STATUS,
            code=ErrorCode.STORAGE_PARTIAL_FAILURE,
            message=message,
            error=message,
            extra={"path": path, "deletedCount": deleted_count, "errors": failures},
        )
        self.deleted_count = deleted_count
        self.failures = failures


class TransportError(StorageError):
    def __init__(self, error: str, *, timeout: bool = False) -> None:
        super().__init__(
            status_code=status.HTTP_504_GATEWAY_TIMEOUT if timeout else status.HTTP_502_BAD_GATEWAY,
            code=ErrorCode.STORAGE_TRANSPORT_ERROR,
            message="Storage provider timed out" if timeout else "Storage provider unreachable",
            error=error,
        )
        self.timeout = timeout


class ProviderError(StorageError):
    def __init__(self, *, http_status: int, provider_code: str | None, provider_message: str | None) -> None:
        super().__init__(
            status_code=status.HTTP_502_BAD_GATEWAY,
            code=ErrorCode.STORAGE_PROVIDER_ERROR,
            message="Storage provider rejected the request",
            details={"providerStatus": http_status, "providerCode": provider_code},
            error=provider_message or provider_code or f"HTTP {http_status}",
        )
        self.http_status = http_status
        self.provider_code = provider_code
        self.provider_message = provider_message


class UnauthorizedSignal(ProviderError):
    """The provider rejected the bearer token; the session must be re-acquired."""


def validation_failed(message: str, *, field: str | None = None) -> AppException:
    return AppException(
        status_code=status.HTTP_400_BAD_REQUEST,
        code=ErrorCode.VALIDATION_FAILED,
        message=message,
        details={"field": field} if field else None,
        error=message,
    )


def upload_too_large(max_size_bytes: int) -> AppException:
    return AppException(
        status_code=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        code=ErrorCode.UPLOAD_TOO_LARGE,
        message="File too large",
        details={"max_size_bytes": max_size_bytes},
        error=f"File exceeds the {max_size_bytes} byte limit",
    )
