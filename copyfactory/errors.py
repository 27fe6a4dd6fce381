# copyfactory/errors.py
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional

from copyfactory.utils.time import parse_iso


class ApiError(Exception):
    """Base class for API errors. Carries HTTP status and the request URL."""
    retryable: bool = False

    def __init__(self, message: str = "", status: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.status = status
        self.url = url
        # i18n code and arguments reported by the server, if any
        self.code: Optional[str] = None
        self.arguments: Optional[List[Any]] = None

    def __str__(self):
        base = self.message or self.__class__.__name__
        if self.url:
            return f"{base} [url={self.url}]"
        return base


class ValidationError(ApiError):
    """400 Bad Request."""

    def __init__(self, message: str = "", details: Any = None, **kwargs):
        super().__init__(message, **kwargs)
        self.details = details

    def __str__(self):
        base = super().__str__()
        if self.details:
            return f"{base}, details: {self.details}"
        return base


class UnauthorizedError(ApiError):
    """401, invalid or missing token."""


class ForbiddenError(ApiError):
    """403, token lacks the role or scope."""


class NotFoundError(ApiError):
    """404."""


class ConflictError(ApiError):
    """409, concurrent mutation conflict."""


@dataclass
class TooManyRequestsMetadata:
    period_in_minutes: Optional[float] = None
    requests_per_period_allowed: Optional[int] = None
    recommended_retry_time: Optional[datetime] = None

    @classmethod
    def from_dict(cls, d: Optional[Dict[str, Any]]) -> "TooManyRequestsMetadata":
        d = d or {}
        try:
            retry_time = parse_iso(d.get("recommendedRetryTime"))
        except ValueError:
            retry_time = None
        return cls(
            period_in_minutes=d.get("periodInMinutes"),
            requests_per_period_allowed=d.get("requestsPerPeriodAllowed"),
            recommended_retry_time=retry_time,
        )


class TooManyRequestsError(ApiError):
    """429. Retry no earlier than metadata.recommended_retry_time."""
    retryable = True

    def __init__(self, message: str = "", metadata: Optional[TooManyRequestsMetadata] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.metadata = metadata or TooManyRequestsMetadata()


class InternalError(ApiError):
    """5xx, unknown status or a transport fault (status is None)."""

    @property
    def retryable(self) -> bool:
        return self.status is None or self.status >= 500


class RequestTimeoutError(ApiError):
    """Local request timeout expired."""
    retryable = True


class MethodAccessError(Exception):
    """The token in use has no access to the method."""

    def __init__(self, method_name: str, access_type: str = "api"):
        if access_type == "api":
            msg = f"You can not invoke {method_name} method, because you have connected with account access token. " \
                  f"Please use API access token from https://app.metaapi.cloud/api-access/generate page to invoke this method."
        else:
            msg = f"You can not invoke {method_name} method, because you have connected with API access token."
        super().__init__(msg)
        self.method_name = method_name
        self.access_type = access_type


_STATUS_TO_ERROR = {
    401: UnauthorizedError,
    403: ForbiddenError,
    404: NotFoundError,
    409: ConflictError,
}


def map_response(status: int, body: Any, url: Optional[str] = None) -> ApiError:
    """
    Translate a non-2xx response into a typed error.
    body is the decoded JSON payload ({"error", "message", "details", "metadata", ...})
    or raw text when the server did not answer with JSON.
    """
    payload: Dict[str, Any] = body if isinstance(body, dict) else {}
    message = payload.get("message") or (body if isinstance(body, str) and body else None) \
        or f"HTTP {status}"

    if status == 400:
        err: ApiError = ValidationError(message, details=payload.get("details"), status=status, url=url)
    elif status == 429:
        err = TooManyRequestsError(
            message, metadata=TooManyRequestsMetadata.from_dict(payload.get("metadata")), status=status, url=url
        )
    elif status in _STATUS_TO_ERROR:
        err = _STATUS_TO_ERROR[status](message, status=status, url=url)
    else:
        err = InternalError(message, status=status, url=url)

    if payload.get("code") is not None:
        err.code = str(payload["code"])
    if payload.get("arguments") is not None:
        err.arguments = payload["arguments"]
    return err
