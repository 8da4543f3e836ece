# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""AWS Signature Version 4 signing for S3 Vectors requests.

Produces the header set (including ``authorization``) for one outbound
request.  Signing is a pure function of its inputs plus the timestamp;
it never performs I/O and never awaits, so the timestamp that is signed
is the timestamp that is sent.

The query component of the canonical request is always empty: every
S3 Vectors operation is a JSON ``POST`` without query parameters.

No boto3/botocore dependency; uses only stdlib ``hmac``/``hashlib``.
"""

from __future__ import annotations

import hashlib
import hmac
import re
import urllib.parse
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime

from s3vectors.errors import SigningError


ALGORITHM = "AWS4-HMAC-SHA256"

#: Service name in the credential scope.  Must match what the service
#: expects exactly; an empty or different name fails every request.
SERVICE_NAME = "s3vectors"

_TERMINATOR = "aws4_request"

_DEFAULT_PORTS = {"http": 80, "https": 443}

_SHA256_EMPTY = hashlib.sha256(b"").hexdigest()

# Authorization header regex
_AUTH_HEADER_RE = re.compile(
    r"(?P<algorithm>AWS4-HMAC-SHA256)\s+"
    r"Credential=(?P<key_id>[^/]+)/(?P<scope>[^,]+),\s*"
    r"SignedHeaders=(?P<signed_headers>[^,]+),\s*"
    r"Signature=(?P<signature>[0-9a-f]+)"
)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Credentials:
    """AWS credentials bound to a region.

    The secret access key and session token are excluded from ``repr`` so
    they cannot leak through debug output or tracebacks.

    Attributes:
        access_key_id: AWS access key ID.
        secret_access_key: AWS secret access key.
        session_token: Optional STS session token.
        region: Region used in the credential scope.
    """

    access_key_id: str
    secret_access_key: str
    session_token: str | None = None
    region: str = "us-east-1"

    def __post_init__(self) -> None:
        if not self.access_key_id:
            raise ValueError("access_key_id must not be empty")
        if not self.secret_access_key:
            raise ValueError("secret_access_key must not be empty")
        if not self.region:
            raise ValueError("region must not be empty")

    def __repr__(self) -> str:
        token = "'***'" if self.session_token else "None"
        return (
            f"Credentials(access_key_id={self.access_key_id!r}, "
            f"secret_access_key='***', session_token={token}, "
            f"region={self.region!r})"
        )


# ---------------------------------------------------------------------------
# Parsed authorization header
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ParsedAuth:
    """Fields of a SigV4 ``authorization`` header value."""

    algorithm: str
    key_id: str
    scope: str
    signed_headers: str
    signature: str

    @property
    def scope_parts(self) -> list[str]:
        return self.scope.split("/")

    @property
    def date(self) -> str:
        return self.scope_parts[0]

    @property
    def region(self) -> str:
        return self.scope_parts[1]

    @property
    def service(self) -> str:
        return self.scope_parts[2]


def parse_auth_header(auth_value: str) -> ParsedAuth | None:
    """Decode an ``authorization`` header; ``None`` if it is not SigV4."""
    m = _AUTH_HEADER_RE.match(auth_value)
    if not m:
        return None
    return ParsedAuth(**m.groupdict())


# ---------------------------------------------------------------------------
# Canonical request construction
# ---------------------------------------------------------------------------


def format_timestamps(now: datetime) -> tuple[str, str]:
    """Derive the date stamp and the full ``x-amz-date`` stamp.

    Naive datetimes are taken to be UTC.

    Returns:
        ``(YYYYMMDD, YYYYMMDDTHHMMSSZ)``.
    """
    if now.tzinfo is None:
        now = now.replace(tzinfo=UTC)
    now = now.astimezone(UTC)
    return now.strftime("%Y%m%d"), now.strftime("%Y%m%dT%H%M%SZ")


def host_from_url(url: str) -> tuple[str, str]:
    """Extract the ``host`` header value and the URI path from a URL.

    The port is included only when it differs from the scheme default.

    Raises:
        SigningError: If the URL has no parseable host.
    """
    try:
        parts = urllib.parse.urlsplit(url)
        port = parts.port
    except ValueError as e:
        raise SigningError(f"Failed to parse URL {url!r}: {e}") from e

    if not parts.hostname:
        raise SigningError(f"URL has no host: {url!r}")

    host = parts.hostname
    if port is not None and port != _DEFAULT_PORTS.get(parts.scheme):
        host = f"{host}:{port}"
    return host, parts.path or "/"


def canonical_headers_string(headers: Mapping[str, str]) -> str:
    """Build the canonical header block.

    Each header becomes ``lowercase-name:trimmed-value``; lines are sorted
    lexicographically and joined with newlines, with a trailing newline.
    """
    lines = sorted(
        f"{name.lower()}:{value.strip()}" for name, value in headers.items()
    )
    return "\n".join(lines) + "\n"


def signed_headers_string(headers: Mapping[str, str]) -> str:
    """Lower-cased header names, sorted, joined with ``;``."""
    return ";".join(sorted(name.lower() for name in headers))


def build_canonical_request(
    method: str,
    path: str,
    headers: Mapping[str, str],
    signed_headers: str,
    payload_hash: str,
) -> str:
    """Build the canonical request string.

    The query component is always empty.

    Args:
        method: HTTP method.
        path: URI path.
        headers: Headers to sign.
        signed_headers: Output of ``signed_headers_string(headers)``.
        payload_hash: Hex SHA-256 of the payload.
    """
    return (
        f"{method.upper()}\n{path or '/'}\n\n"
        f"{canonical_headers_string(headers)}\n"
        f"{signed_headers}\n"
        f"{payload_hash}"
    )


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    """``date/region/service/aws4_request``."""
    return f"{date_stamp}/{region}/{service}/{_TERMINATOR}"


def build_string_to_sign(
    amz_date: str, scope: str, canonical_request: str
) -> str:
    """Build the SigV4 string to sign.

    Args:
        amz_date: Full timestamp (``x-amz-date``).
        scope: Credential scope.
        canonical_request: The canonical request string.
    """
    return "\n".join(
        [
            ALGORITHM,
            amz_date,
            scope,
            hashlib.sha256(canonical_request.encode("utf-8")).hexdigest(),
        ]
    )


# ---------------------------------------------------------------------------
# Key derivation and signature
# ---------------------------------------------------------------------------


def _hmac_sha256(key: bytes, msg: str | bytes) -> bytes:
    """HMAC-SHA256 helper."""
    if isinstance(msg, str):
        msg = msg.encode("utf-8")
    return hmac.new(key, msg, hashlib.sha256).digest()


def derive_signing_key(
    secret_key: str, date_stamp: str, region: str, service: str
) -> bytes:
    """Derive the SigV4 signing key.

    Each step's output is the next step's key; the order is fixed.
    """
    k_date = _hmac_sha256(("AWS4" + secret_key).encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, _TERMINATOR)


def sign_string(signing_key: bytes, string_to_sign: str) -> str:
    """Hex-encoded HMAC-SHA256 of the string to sign."""
    return hmac.new(
        signing_key, string_to_sign.encode("utf-8"), hashlib.sha256
    ).hexdigest()


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


class SigningResult:
    """Outcome of signing one request.

    ``headers`` is what goes on the wire; the remaining fields are the
    intermediate values, kept for debug logging and tests.
    """

    __slots__ = (
        "headers",
        "canonical_request",
        "string_to_sign",
        "signed_headers",
        "signature",
        "amz_date",
    )

    def __init__(
        self,
        headers: dict[str, str],
        *,
        canonical_request: str,
        string_to_sign: str,
        signed_headers: str,
        signature: str,
        amz_date: str,
    ) -> None:
        self.headers = headers
        self.canonical_request = canonical_request
        self.string_to_sign = string_to_sign
        self.signed_headers = signed_headers
        self.signature = signature
        self.amz_date = amz_date


class SigV4Signer:
    """Signs requests with a fixed set of credentials.

    Args:
        credentials: Credentials to sign with (region included).
        service: Service name for the credential scope.
    """

    def __init__(
        self, credentials: Credentials, service: str = SERVICE_NAME
    ) -> None:
        self._credentials = credentials
        self._service = service

    @property
    def region(self) -> str:
        return self._credentials.region

    @property
    def access_key_id(self) -> str:
        return self._credentials.access_key_id

    def __repr__(self) -> str:
        return f"SigV4Signer({self._credentials!r}, service={self._service!r})"

    def sign(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        payload: bytes = b"",
        now: datetime | None = None,
    ) -> dict[str, str]:
        """Return the complete signed header map for a request.

        Raises:
            SigningError: If the URL has no parseable host.
        """
        result = self.sign_with_details(method, url, headers, payload, now)
        return result.headers

    def sign_with_details(
        self,
        method: str,
        url: str,
        headers: Mapping[str, str] | None = None,
        payload: bytes = b"",
        now: datetime | None = None,
    ) -> SigningResult:
        """Sign a request and keep the intermediate values.

        Args:
            method: HTTP method.
            url: Absolute request URL.
            headers: Extra headers to sign (names are lower-cased).
            payload: Exact body bytes that will be sent.
            now: Signing time; defaults to the current UTC time.

        Returns:
            SigningResult whose ``headers`` include ``authorization``.

        Raises:
            SigningError: If the URL has no parseable host.
        """
        if now is None:
            now = datetime.now(UTC)
        date_stamp, amz_date = format_timestamps(now)
        host, path = host_from_url(url)

        signed: dict[str, str] = {}
        for name, value in (headers or {}).items():
            signed[name.lower()] = value
        signed["host"] = host
        signed["x-amz-date"] = amz_date
        if self._credentials.session_token:
            signed["x-amz-security-token"] = self._credentials.session_token

        payload_hash = (
            hashlib.sha256(payload).hexdigest() if payload else _SHA256_EMPTY
        )
        signed["x-amz-content-sha256"] = payload_hash

        signed_headers = signed_headers_string(signed)
        creq = build_canonical_request(
            method, path, signed, signed_headers, payload_hash
        )

        scope = credential_scope(
            date_stamp, self._credentials.region, self._service
        )
        string_to_sign = build_string_to_sign(amz_date, scope, creq)
        signing_key = derive_signing_key(
            self._credentials.secret_access_key,
            date_stamp,
            self._credentials.region,
            self._service,
        )
        signature = sign_string(signing_key, string_to_sign)

        signed["authorization"] = (
            f"{ALGORITHM} "
            f"Credential={self._credentials.access_key_id}/{scope}, "
            f"SignedHeaders={signed_headers}, "
            f"Signature={signature}"
        )

        return SigningResult(
            signed,
            canonical_request=creq,
            string_to_sign=string_to_sign,
            signed_headers=signed_headers,
            signature=signature,
            amz_date=amz_date,
        )


# ---------------------------------------------------------------------------
# Clock skew detection
# ---------------------------------------------------------------------------


def check_clock_skew(
    amz_date: str, now: datetime | None = None
) -> tuple[bool, int]:
    """Check if an ``x-amz-date`` stamp differs significantly from now.

    Args:
        amz_date: Timestamp in ``YYYYMMDDTHHMMSSZ`` form.
        now: Reference time; defaults to the current UTC time.

    Returns:
        Tuple of (is_skewed, drift_minutes). is_skewed is True if drift
        exceeds 5 minutes.
    """
    try:
        request_time = datetime.strptime(amz_date, "%Y%m%dT%H%M%SZ").replace(
            tzinfo=UTC
        )
    except (ValueError, TypeError):
        return False, 0
    if now is None:
        now = datetime.now(UTC)
    drift = abs((now - request_time).total_seconds())
    drift_minutes = int(drift / 60)
    return drift_minutes > 5, drift_minutes
