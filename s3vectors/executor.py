# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Signed request execution with retry and error classification.

``RequestExecutor.execute`` runs one logical API call to a terminal
outcome.  Each attempt serializes the body, signs it with the time of
*that* attempt, sends it and classifies the response:

==================  ===========================================  =======
Outcome             Result                                       Retried
==================  ===========================================  =======
2xx                 decoded JSON object                          --
404                 ``NotFoundError``                            no
409                 ``AlreadyExistsError`` or ``ServiceError``   no
429                 ``RateLimitedError``                         yes
5xx                 ``ServiceError``                             yes
other status        ``ServiceError``                             no
connection failure  ``TransportError``                           yes
==================  ===========================================  =======

Retries wait ``initial_backoff_ms``, then double up to
``max_backoff_ms``; at most ``max_retries`` retries are made, so a call
never performs more than ``max_retries + 1`` attempts.  Attempts within a
call are strictly sequential.
"""

from __future__ import annotations

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Any

import httpx

from s3vectors.errors import (
    AlreadyExistsError,
    AuthRequiredError,
    ErrorDetails,
    NotFoundError,
    RateLimitedError,
    ServiceError,
    TransportError,
)
from s3vectors.signing import (
    SigV4Signer,
    check_clock_skew,
    parse_auth_header,
)


logger = logging.getLogger(__name__)

#: Default per-request timeout in seconds.
DEFAULT_TIMEOUT_SECONDS = 30.0

_CONTENT_TYPE = "application/json"

# Substrings of a 409 error type that mean "the resource already exists".
_CONFLICT_MARKERS = ("alreadyexists", "conflict")


def utc_now() -> datetime:
    """Current time in UTC."""
    return datetime.now(UTC)


# ---------------------------------------------------------------------------
# Retry policy and state
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RetryPolicy:
    """Retry configuration with capped exponential backoff.

    Attributes:
        max_retries: Retries after the first attempt.
        initial_backoff_ms: Wait before the first retry.
        max_backoff_ms: Ceiling for any single wait.
    """

    max_retries: int = 3
    initial_backoff_ms: int = 100
    max_backoff_ms: int = 5000

    def __post_init__(self) -> None:
        """Validate configuration.

        Raises:
            ValueError: If configuration is invalid.
        """
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0: {self.max_retries}")
        if self.initial_backoff_ms <= 0 or self.max_backoff_ms <= 0:
            raise ValueError("Backoff times must be positive")
        if self.initial_backoff_ms > self.max_backoff_ms:
            raise ValueError(
                f"initial_backoff_ms ({self.initial_backoff_ms}) exceeds "
                f"max_backoff_ms ({self.max_backoff_ms})"
            )

    def new_state(self) -> RetryState:
        return RetryState(self)


class RetryState:
    """Attempt counter and current backoff for one logical call."""

    __slots__ = ("_policy", "attempt", "backoff_ms")

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy
        self.attempt = 0
        self.backoff_ms = policy.initial_backoff_ms

    def advance(self) -> None:
        """Record a retry: bump the attempt, double the capped backoff."""
        self.attempt += 1
        self.backoff_ms = min(self.backoff_ms * 2, self._policy.max_backoff_ms)


@dataclass(frozen=True)
class _Retryable:
    """A transient attempt failure.

    ``exhausted`` builds the error raised once no retries remain; it
    receives the final state so it can report the next backoff.
    """

    reason: str
    exhausted: Callable[[RetryState], Exception]
    cause: BaseException | None = None


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


def decode_error(response: httpx.Response) -> ErrorDetails | None:
    """Decode a service error body.

    Accepts ``{"__type": ..., "message": ...}`` bodies and falls back to
    the ``x-amzn-errortype`` / ``x-amzn-requestid`` headers.

    Returns:
        ErrorDetails, or None if the body carries no message.
    """
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None

    message = body.get("message") or body.get("Message")
    if not isinstance(message, str):
        return None

    error_type = body.get("__type") or response.headers.get("x-amzn-errortype")
    if error_type:
        # "ConflictException:http://internal..." and "ns#ConflictException"
        error_type = str(error_type).split(":", 1)[0].rsplit("#", 1)[-1]

    request_id = (
        body.get("requestId")
        or body.get("RequestId")
        or response.headers.get("x-amzn-requestid")
    )
    return ErrorDetails(
        message=message,
        error_type=error_type or None,
        request_id=str(request_id) if request_id else None,
    )


def _fallback_details(response: httpx.Response) -> ErrorDetails:
    text = response.text.strip()
    message = (
        f"Request failed with status {response.status_code}: {text}"
        if text
        else f"Request failed with status {response.status_code}"
    )
    return ErrorDetails(
        message=message,
        error_type=response.headers.get("x-amzn-errortype"),
        request_id=response.headers.get("x-amzn-requestid"),
    )


def _is_already_exists(details: ErrorDetails | None) -> bool:
    # Without a type tag a 409 is taken at face value.
    if details is None or not details.error_type:
        return True
    tag = details.error_type.lower()
    return any(marker in tag for marker in _CONFLICT_MARKERS)


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class RequestExecutor:
    """Executes signed JSON requests against one endpoint.

    Args:
        endpoint: Base URL, e.g. ``https://s3vectors.us-east-1.api.aws``.
        signer: Signer, or None when no credentials are configured.
        policy: Retry policy.
        http_client: Shared ``httpx.AsyncClient``.  When omitted, one is
            created and closed by ``aclose()``.
        timeout: Request timeout for a created client.
        verify_ssl: TLS verification for a created client.
        sleep: Backoff sleep coroutine (injectable for tests).
        clock: Signing time source (injectable for tests).
    """

    def __init__(
        self,
        endpoint: str,
        signer: SigV4Signer | None,
        *,
        policy: RetryPolicy | None = None,
        http_client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
        verify_ssl: bool = True,
        user_agent: str | None = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        clock: Callable[[], datetime] = utc_now,
    ) -> None:
        self._endpoint = endpoint.rstrip("/")
        self._signer = signer
        self._policy = policy or RetryPolicy()
        self._owns_client = http_client is None
        if http_client is None:
            headers = {"user-agent": user_agent} if user_agent else None
            http_client = httpx.AsyncClient(
                timeout=timeout, verify=verify_ssl, headers=headers
            )
        self._http = http_client
        self._sleep = sleep
        self._clock = clock

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    @property
    def has_credentials(self) -> bool:
        return self._signer is not None

    async def aclose(self) -> None:
        """Close the HTTP client if this executor created it."""
        if self._owns_client:
            await self._http.aclose()

    async def execute(
        self,
        method: str,
        path: str,
        body: Any = None,
    ) -> dict[str, Any]:
        """Execute one logical call to completion.

        Args:
            method: HTTP method.
            path: Path below the endpoint (e.g. ``/CreateVectorBucket``).
            body: JSON-serializable request body, or None.

        Returns:
            Decoded JSON response object (``{}`` for an empty body).

        Raises:
            AuthRequiredError: No credentials configured.
            SigningError: The URL cannot be signed.
            NotFoundError: 404 from the service.
            AlreadyExistsError: 409 indicating an existing resource.
            RateLimitedError: 429 after all retries.
            ServiceError: 5xx after all retries, or any other failure.
            TransportError: Connection failure after all retries.
        """
        if self._signer is None:
            raise AuthRequiredError(
                "No credentials configured. Set AWS_ACCESS_KEY_ID and "
                "AWS_SECRET_ACCESS_KEY, or use --profile."
            )

        url = f"{self._endpoint}{path}"
        payload = (
            json.dumps(body, separators=(",", ":")).encode("utf-8")
            if body is not None
            else b""
        )
        state = self._policy.new_state()

        outcome = await self._attempt(method, url, path, payload, state)
        if not isinstance(outcome, _Retryable):
            return outcome
        for _ in range(self._policy.max_retries):
            await self._backoff(state, outcome.reason)
            outcome = await self._attempt(method, url, path, payload, state)
            if not isinstance(outcome, _Retryable):
                return outcome
        raise outcome.exhausted(state) from outcome.cause

    async def _attempt(
        self,
        method: str,
        url: str,
        path: str,
        payload: bytes,
        state: RetryState,
    ) -> dict[str, Any] | _Retryable:
        """Sign, send and classify one attempt.

        Returns:
            The decoded body, or ``_Retryable`` for a transient failure.

        Raises:
            S3VectorsError: For a terminal failure.
        """
        assert self._signer is not None
        headers = self._signer.sign(
            method,
            url,
            {"content-type": _CONTENT_TYPE},
            payload,
            self._clock(),
        )
        auth = parse_auth_header(headers["authorization"])
        logger.debug(
            "Executing %s request to %s (attempt %d, scope %s, signed %s)",
            method,
            path,
            state.attempt + 1,
            auth.scope if auth else "-",
            auth.signed_headers if auth else "-",
        )

        try:
            response = await self._http.request(
                method, url, content=payload, headers=headers
            )
        except httpx.TransportError as e:
            err = e
            return _Retryable(
                f"Transport error ({err})",
                lambda s: TransportError(
                    f"{method} {path} failed after {s.attempt + 1} "
                    f"attempts: {err}"
                ),
                cause=err,
            )

        status = response.status_code
        if response.is_success:
            return self._decode_success(response)

        details = decode_error(response)
        resolved = details or _fallback_details(response)

        if status == 404:
            raise NotFoundError.from_details(status, resolved)

        if status == 409:
            if _is_already_exists(details):
                raise AlreadyExistsError.from_details(status, resolved)
            raise ServiceError.from_details(status, resolved)

        if status == 429:
            return _Retryable(
                "Rate limited",
                lambda s: RateLimitedError(
                    resolved.message,
                    status_code=status,
                    retry_after_ms=s.backoff_ms,
                    error_type=resolved.error_type,
                    request_id=resolved.request_id,
                ),
            )

        if response.is_server_error:
            return _Retryable(
                f"Server error (HTTP {status})",
                lambda s: ServiceError.from_details(status, resolved),
            )

        if status == 403:
            self._warn_if_clock_skewed(headers, response)

        raise ServiceError.from_details(status, resolved)

    async def _backoff(self, state: RetryState, reason: str) -> None:
        logger.warning(
            "%s, retrying after %dms (retry %d of %d)",
            reason,
            state.backoff_ms,
            state.attempt + 1,
            self._policy.max_retries,
        )
        await self._sleep(state.backoff_ms / 1000)
        state.advance()

    @staticmethod
    def _decode_success(response: httpx.Response) -> dict[str, Any]:
        if not response.content:
            return {}
        try:
            data = response.json()
        except ValueError as e:
            raise ServiceError(
                f"Failed to parse response: {e}",
                status_code=response.status_code,
                request_id=response.headers.get("x-amzn-requestid"),
            ) from e
        if not isinstance(data, dict):
            raise ServiceError(
                f"Unexpected response shape: {type(data).__name__}",
                status_code=response.status_code,
                request_id=response.headers.get("x-amzn-requestid"),
            )
        return data

    def _warn_if_clock_skewed(
        self, headers: dict[str, str], response: httpx.Response
    ) -> None:
        server_date = response.headers.get("date")
        if not server_date:
            return
        try:
            server_now = parsedate_to_datetime(server_date)
        except (TypeError, ValueError):
            return
        skewed, drift = check_clock_skew(
            headers.get("x-amz-date", ""), server_now
        )
        if skewed:
            logger.warning(
                "Request rejected and local clock is %d minutes off; "
                "SigV4 signatures are only valid within 5 minutes",
                drift,
            )
