# Copyright (c) 2026 Pyry Haulos
#
# This software is released under the MIT License.
# https://opensource.org/licenses/MIT

"""Tests for s3vectors/signing.py: SigV4 request signing."""

import hashlib
import hmac
from datetime import UTC, datetime, timedelta, timezone

import pytest

from s3vectors.errors import SigningError
from s3vectors.signing import (
    ALGORITHM,
    SERVICE_NAME,
    Credentials,
    SigV4Signer,
    build_canonical_request,
    build_string_to_sign,
    canonical_headers_string,
    check_clock_skew,
    credential_scope,
    derive_signing_key,
    format_timestamps,
    host_from_url,
    parse_auth_header,
    sign_string,
    signed_headers_string,
)


# Published AWS example credentials.
_EXAMPLE_KEY_ID = "AKIDEXAMPLE"
_EXAMPLE_SECRET = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
_EMPTY_HASH = (
    "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"
)
_URL = "https://s3vectors.us-east-1.api.aws/CreateVectorBucket"
_NOW = datetime(2025, 7, 15, 12, 30, 45, tzinfo=UTC)


def _signer(session_token: str | None = None) -> SigV4Signer:
    return SigV4Signer(
        Credentials(
            access_key_id=_EXAMPLE_KEY_ID,
            secret_access_key=_EXAMPLE_SECRET,
            session_token=session_token,
            region="us-east-1",
        )
    )


# ---------------------------------------------------------------------------
# Published AWS test vectors
# ---------------------------------------------------------------------------


class TestAwsVectors:
    def test_signing_key_matches_aws_documentation(self) -> None:
        """kSigning from the AWS SigV4 key-derivation example."""
        key = derive_signing_key(
            _EXAMPLE_SECRET, "20120215", "us-east-1", "iam"
        )
        assert key.hex() == (
            "f4780e2d9f65fa895f9c67b32ce1baf0b0d8a43505a000a1a9e090d414db404d"
        )

    def test_get_vanilla_signature(self) -> None:
        """The get-vanilla case from the AWS SigV4 test suite."""
        headers = {
            "host": "example.amazonaws.com",
            "x-amz-date": "20150830T123600Z",
        }
        signed = signed_headers_string(headers)
        assert signed == "host;x-amz-date"

        creq = build_canonical_request("GET", "/", headers, signed, _EMPTY_HASH)
        assert creq == (
            "GET\n/\n\n"
            "host:example.amazonaws.com\n"
            "x-amz-date:20150830T123600Z\n"
            "\n"
            "host;x-amz-date\n" + _EMPTY_HASH
        )

        scope = credential_scope("20150830", "us-east-1", "service")
        sts = build_string_to_sign("20150830T123600Z", scope, creq)
        key = derive_signing_key(
            _EXAMPLE_SECRET, "20150830", "us-east-1", "service"
        )
        assert sign_string(key, sts) == (
            "5fa00fa31553b73ebf1942676e86291e8372ff2a2260956d9b8aae1d763fbf31"
        )


# ---------------------------------------------------------------------------
# Canonicalization helpers
# ---------------------------------------------------------------------------


class TestCanonicalHeaders:
    def test_lowercases_and_trims(self) -> None:
        result = canonical_headers_string({"X-Amz-Date": "  20250101T000000Z "})
        assert result == "x-amz-date:20250101T000000Z\n"

    def test_sorted_by_line(self) -> None:
        result = canonical_headers_string(
            {"x-amz-date": "d", "host": "h", "content-type": "c"}
        )
        assert result == "content-type:c\nhost:h\nx-amz-date:d\n"

    def test_signed_headers_sorted_and_joined(self) -> None:
        assert (
            signed_headers_string({"X-Amz-Date": "", "Host": "", "a": ""})
            == "a;host;x-amz-date"
        )


class TestFormatTimestamps:
    def test_utc(self) -> None:
        assert format_timestamps(_NOW) == ("20250715", "20250715T123045Z")

    def test_naive_treated_as_utc(self) -> None:
        naive = datetime(2025, 7, 15, 12, 30, 45)
        assert format_timestamps(naive) == ("20250715", "20250715T123045Z")

    def test_other_timezone_converted(self) -> None:
        plus_two = datetime(
            2025, 7, 15, 14, 30, 45, tzinfo=timezone(timedelta(hours=2))
        )
        assert format_timestamps(plus_two) == ("20250715", "20250715T123045Z")


class TestHostFromUrl:
    def test_default_https_port_omitted(self) -> None:
        assert host_from_url("https://example.com:443/Path") == (
            "example.com",
            "/Path",
        )

    def test_default_http_port_omitted(self) -> None:
        assert host_from_url("http://example.com:80/") == ("example.com", "/")

    def test_non_default_port_kept(self) -> None:
        assert host_from_url("http://localhost:8080/GetIndex") == (
            "localhost:8080",
            "/GetIndex",
        )

    def test_empty_path_becomes_slash(self) -> None:
        assert host_from_url("https://example.com") == ("example.com", "/")

    def test_no_host_raises(self) -> None:
        with pytest.raises(SigningError, match="no host"):
            host_from_url("/just/a/path")

    def test_bad_port_raises(self) -> None:
        with pytest.raises(SigningError, match="Failed to parse"):
            host_from_url("https://example.com:notaport/")


# ---------------------------------------------------------------------------
# Signer
# ---------------------------------------------------------------------------


class TestSigV4Signer:
    def test_required_headers_present(self) -> None:
        headers = _signer().sign("POST", _URL, {}, b"{}", _NOW)
        assert headers["host"] == "s3vectors.us-east-1.api.aws"
        assert headers["x-amz-date"] == "20250715T123045Z"
        assert headers["x-amz-content-sha256"] == (
            hashlib.sha256(b"{}").hexdigest()
        )
        assert headers["authorization"].startswith(ALGORITHM + " ")
        assert "x-amz-security-token" not in headers

    def test_empty_payload_hash(self) -> None:
        headers = _signer().sign("POST", _URL, {}, b"", _NOW)
        assert headers["x-amz-content-sha256"] == _EMPTY_HASH

    def test_deterministic(self) -> None:
        headers = {"content-type": "application/json"}
        a = _signer().sign("POST", _URL, headers, b"{}", _NOW)
        b = _signer().sign("POST", _URL, headers, b"{}", _NOW)
        assert a == b

    def test_header_order_and_case_do_not_matter(self) -> None:
        a = _signer().sign(
            "POST",
            _URL,
            {"Content-Type": "application/json", "X-Extra": "1"},
            b"{}",
            _NOW,
        )
        b = _signer().sign(
            "POST",
            _URL,
            {"x-extra": "1", "content-type": "application/json"},
            b"{}",
            _NOW,
        )
        assert a["authorization"] == b["authorization"]

    def test_payload_change_changes_signature(self) -> None:
        a = _signer().sign("POST", _URL, {}, b'{"a":1}', _NOW)
        b = _signer().sign("POST", _URL, {}, b'{"a":2}', _NOW)
        assert a["authorization"] != b["authorization"]

    def test_time_change_changes_signature(self) -> None:
        a = _signer().sign("POST", _URL, {}, b"{}", _NOW)
        b = _signer().sign("POST", _URL, {}, b"{}", _NOW + timedelta(seconds=1))
        assert a["authorization"] != b["authorization"]

    def test_method_is_uppercased(self) -> None:
        a = _signer().sign("post", _URL, {}, b"{}", _NOW)
        b = _signer().sign("POST", _URL, {}, b"{}", _NOW)
        assert a["authorization"] == b["authorization"]

    def test_signed_headers_match_sent_headers(self) -> None:
        headers = _signer().sign(
            "POST", _URL, {"content-type": "application/json"}, b"{}", _NOW
        )
        parsed = parse_auth_header(headers["authorization"])
        assert parsed is not None
        sent = sorted(k for k in headers if k != "authorization")
        assert parsed.signed_headers.split(";") == sent

    def test_credential_scope(self) -> None:
        headers = _signer().sign("POST", _URL, {}, b"{}", _NOW)
        parsed = parse_auth_header(headers["authorization"])
        assert parsed is not None
        assert parsed.key_id == _EXAMPLE_KEY_ID
        assert parsed.scope_parts == [
            "20250715",
            "us-east-1",
            SERVICE_NAME,
            "aws4_request",
        ]
        assert parsed.date == "20250715"
        assert (parsed.region, parsed.service) == ("us-east-1", SERVICE_NAME)

    def test_service_name_is_s3vectors(self) -> None:
        assert SERVICE_NAME == "s3vectors"

    def test_session_token_signed(self) -> None:
        headers = _signer(session_token="FwoGZXIvYXdzEXAMPLE").sign(
            "POST", _URL, {}, b"{}", _NOW
        )
        assert headers["x-amz-security-token"] == "FwoGZXIvYXdzEXAMPLE"
        parsed = parse_auth_header(headers["authorization"])
        assert parsed is not None
        assert "x-amz-security-token" in parsed.signed_headers.split(";")

    def test_non_default_port_in_host(self) -> None:
        headers = _signer().sign(
            "POST", "http://localhost:9000/PutVectors", {}, b"{}", _NOW
        )
        assert headers["host"] == "localhost:9000"

    def test_bad_url_raises(self) -> None:
        with pytest.raises(SigningError):
            _signer().sign("POST", "not-a-url", {}, b"{}", _NOW)

    def test_signature_matches_independent_computation(self) -> None:
        """Recompute the whole signature with hmac/hashlib directly."""
        payload = b'{"vectorBucketName":"my-bucket"}'
        result = _signer().sign_with_details(
            "POST", _URL, {"content-type": "application/json"}, payload, _NOW
        )

        payload_hash = hashlib.sha256(payload).hexdigest()
        creq = (
            "POST\n/CreateVectorBucket\n\n"
            "content-type:application/json\n"
            "host:s3vectors.us-east-1.api.aws\n"
            f"x-amz-content-sha256:{payload_hash}\n"
            "x-amz-date:20250715T123045Z\n"
            "\n"
            "content-type;host;x-amz-content-sha256;x-amz-date\n"
            f"{payload_hash}"
        )
        assert result.canonical_request == creq

        scope = "20250715/us-east-1/s3vectors/aws4_request"
        sts = (
            "AWS4-HMAC-SHA256\n20250715T123045Z\n"
            f"{scope}\n{hashlib.sha256(creq.encode()).hexdigest()}"
        )
        assert result.string_to_sign == sts

        def h(key: bytes, msg: str) -> bytes:
            return hmac.new(key, msg.encode(), hashlib.sha256).digest()

        k = h(("AWS4" + _EXAMPLE_SECRET).encode(), "20250715")
        k = h(k, "us-east-1")
        k = h(k, "s3vectors")
        k = h(k, "aws4_request")
        expected = hmac.new(k, sts.encode(), hashlib.sha256).hexdigest()

        assert result.signature == expected
        assert result.headers["authorization"] == (
            f"AWS4-HMAC-SHA256 Credential={_EXAMPLE_KEY_ID}/{scope}, "
            "SignedHeaders=content-type;host;x-amz-content-sha256;x-amz-date, "
            f"Signature={expected}"
        )

    def test_golden_get_signature(self) -> None:
        signer = SigV4Signer(Credentials("AKID", "SECRET", region="us-east-1"))

        headers = signer.sign(
            "GET", "https://svc.us-east-1.example.com/Op", {}, b"", _NOW
        )

        assert headers["authorization"] == (
            "AWS4-HMAC-SHA256 "
            "Credential=AKID/20250715/us-east-1/s3vectors/aws4_request, "
            "SignedHeaders=host;x-amz-content-sha256;x-amz-date, "
            "Signature="
            "dbd3dc77f33245d26328d78d47cf7fb20971512a4d8989973566d8f66071d168"
        )
        assert headers == {
            "host": "svc.us-east-1.example.com",
            "x-amz-date": "20250715T123045Z",
            "x-amz-content-sha256": _EMPTY_HASH,
            "authorization": headers["authorization"],
        }

    def test_repr_hides_secret(self) -> None:
        signer = _signer(session_token="tok-secret")
        assert _EXAMPLE_SECRET not in repr(signer)
        assert "tok-secret" not in repr(signer)


# ---------------------------------------------------------------------------
# Credentials
# ---------------------------------------------------------------------------


class TestCredentials:
    def test_repr_hides_secret_and_token(self) -> None:
        creds = Credentials("AKID", "very-secret", "session-tok", "us-west-2")
        text = repr(creds)
        assert "AKID" in text
        assert "very-secret" not in text
        assert "session-tok" not in text
        assert "us-west-2" in text

    def test_empty_key_id_rejected(self) -> None:
        with pytest.raises(ValueError, match="access_key_id"):
            Credentials("", "secret")

    def test_empty_secret_rejected(self) -> None:
        with pytest.raises(ValueError, match="secret_access_key"):
            Credentials("AKID", "")

    def test_default_region(self) -> None:
        assert Credentials("AKID", "secret").region == "us-east-1"


# ---------------------------------------------------------------------------
# Authorization header parsing and clock skew
# ---------------------------------------------------------------------------


class TestParseAuthHeader:
    def test_invalid_returns_none(self) -> None:
        assert parse_auth_header("Bearer abc") is None


class TestCheckClockSkew:
    def test_within_threshold(self) -> None:
        assert check_clock_skew(
            "20250715T123045Z", _NOW + timedelta(minutes=3)
        ) == (False, 3)

    def test_beyond_threshold(self) -> None:
        assert check_clock_skew(
            "20250715T123045Z", _NOW - timedelta(minutes=10)
        ) == (True, 10)

    def test_unparseable_stamp(self) -> None:
        assert check_clock_skew("garbage", _NOW) == (False, 0)
