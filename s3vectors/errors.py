# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Error taxonomy for S3 Vectors operations.

Every failure surfaced by the client is an ``S3VectorsError`` subclass.
Callers match on the class to decide what to tell the user:

* ``ValidationError`` / ``SigningError``: fix your input
* ``AuthRequiredError``: configure credentials
* ``NotFoundError`` / ``AlreadyExistsError``: resource absent/present
* ``RateLimitedError``: try later
* ``ServiceError`` / ``TransportError``: service or network unhealthy

Errors decoded from an HTTP response carry the status code, the service
error type tag and the request id as attributes.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ErrorDetails:
    """Decoded service error payload.

    Attributes:
        message: Human-readable error message.
        error_type: Service error type tag (e.g. ``ConflictException``).
        request_id: Request id assigned by the service, if any.
    """

    message: str
    error_type: str | None = None
    request_id: str | None = None


class S3VectorsError(Exception):
    """Base class for all client errors."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class AuthRequiredError(S3VectorsError):
    """No credentials configured; nothing was sent."""


class ValidationError(S3VectorsError):
    """Client-side precondition failed; nothing was sent."""


class SigningError(S3VectorsError):
    """The request could not be signed (e.g. URL without host)."""


class TransportError(S3VectorsError):
    """Network-level failure after all retries were exhausted."""


class ResponseError(S3VectorsError):
    """Failure decoded from a non-success HTTP response.

    Attributes:
        status_code: HTTP status of the final attempt.
        error_type: Service error type tag, if decodable.
        request_id: Service request id, if present.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int,
        error_type: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.error_type = error_type
        self.request_id = request_id

    @classmethod
    def from_details(
        cls, status_code: int, details: ErrorDetails
    ) -> ResponseError:
        return cls(
            details.message,
            status_code=status_code,
            error_type=details.error_type,
            request_id=details.request_id,
        )

    def __str__(self) -> str:
        parts = [f"{self.message} (HTTP {self.status_code}"]
        if self.error_type:
            parts.append(f", {self.error_type}")
        if self.request_id:
            parts.append(f", request id {self.request_id}")
        parts.append(")")
        return "".join(parts)


class NotFoundError(ResponseError):
    """The addressed bucket, index or vector does not exist."""


class AlreadyExistsError(ResponseError):
    """The resource being created already exists."""


class ServiceError(ResponseError):
    """Any other service failure, including exhausted 5xx retries."""


class RateLimitedError(ResponseError):
    """Throttled by the service and retries were exhausted.

    Attributes:
        retry_after_ms: Backoff the executor would have waited next.
    """

    def __init__(
        self,
        message: str,
        *,
        status_code: int = 429,
        retry_after_ms: int,
        error_type: str | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(
            message,
            status_code=status_code,
            error_type=error_type,
            request_id=request_id,
        )
        self.retry_after_ms = retry_after_ms

    def __str__(self) -> str:
        return (
            f"Rate limit exceeded, retry after {self.retry_after_ms}ms: "
            f"{super().__str__()}"
        )
