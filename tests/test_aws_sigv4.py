"""Tests for reqauth.aws_sigv4 module."""

import hashlib
from datetime import datetime, timezone

import pytest

from reqauth.aws_sigv4 import (
    AwsSigV4Signer,
    canonical_headers,
    canonical_query_string,
    canonical_uri,
    credential_scope,
    derive_signing_key,
)
from reqauth.credentials import AwsCredentials
from reqauth.errors import EncodingError

SECRET_KEY = "wJalrXUtnFEMI/K7MDENG+bPxRfiCYEXAMPLEKEY"
EMPTY_SHA256 = "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"


def fixed_clock():
    return datetime(2015, 8, 30, 12, 36, 0, tzinfo=timezone.utc)


def auth_fields(authorization):
    algorithm, _, rest = authorization.partition(" ")
    assert algorithm == "AWS4-HMAC-SHA256"
    return dict(part.split("=", 1) for part in rest.split(", "))


@pytest.fixture
def iam_credentials():
    return AwsCredentials(
        access_key="AKIDEXAMPLE",
        secret_key=SECRET_KEY,
        region="us-east-1",
        service="iam",
    )


@pytest.fixture
def signer():
    return AwsSigV4Signer(clock=fixed_clock)


class TestAwsSigV4Signer:
    """Tests for AwsSigV4Signer.sign."""

    def test_iam_list_users_example(self, signer, iam_credentials):
        """Example request from the AWS Signature Version 4 documentation."""
        headers = signer.sign(
            iam_credentials,
            "GET",
            "https://iam.amazonaws.com/?Action=ListUsers&Version=2010-05-08",
            {"Content-Type": "application/x-www-form-urlencoded; charset=utf-8"},
        )

        assert headers["x-amz-date"] == "20150830T123600Z"
        assert headers["host"] == "iam.amazonaws.com"
        assert headers["Content-Type"] == "application/x-www-form-urlencoded; charset=utf-8"
        assert headers["Authorization"] == (
            "AWS4-HMAC-SHA256 "
            "Credential=AKIDEXAMPLE/20150830/us-east-1/iam/aws4_request, "
            "SignedHeaders=content-type;host;x-amz-date, "
            "Signature=5d672d79c15b13162d9279b0855cfba6789a8edb4c82c400e06b5924a6f2b5d7"
        )

    def test_signed_headers_match_sent_headers(self, signer, iam_credentials):
        headers = signer.sign(
            iam_credentials,
            "POST",
            "https://iam.amazonaws.com/",
            {"Content-Type": "application/json", "X-Custom": "1"},
            b"{}",
        )

        signed = auth_fields(headers["Authorization"])["SignedHeaders"].split(";")
        sent = sorted(name.lower() for name in headers if name != "Authorization")
        assert signed == sent

    def test_signature_depends_on_body(self, signer, iam_credentials):
        url = "https://iam.amazonaws.com/"
        first = signer.sign(iam_credentials, "POST", url, body=b"a")
        second = signer.sign(iam_credentials, "POST", url, body=b"b")

        assert first["Authorization"] != second["Authorization"]

    def test_session_token(self, signer):
        credentials = AwsCredentials(
            access_key="AKIDEXAMPLE",
            secret_key=SECRET_KEY,
            region="us-east-1",
            service="execute-api",
            session_token="session-token",
        )

        headers = signer.sign(credentials, "GET", "https://api.example.com/prod/items")

        assert headers["x-amz-security-token"] == "session-token"
        signed = auth_fields(headers["Authorization"])["SignedHeaders"]
        assert signed == "host;x-amz-date;x-amz-security-token"

    def test_s3_content_sha256(self, signer):
        credentials = AwsCredentials("AKIDEXAMPLE", SECRET_KEY, "us-east-1", "s3")

        headers = signer.sign(
            credentials, "PUT", "https://bucket.s3.amazonaws.com/key.txt", body=b"hello"
        )

        assert headers["x-amz-content-sha256"] == hashlib.sha256(b"hello").hexdigest()
        signed = auth_fields(headers["Authorization"])["SignedHeaders"]
        assert signed == "host;x-amz-content-sha256;x-amz-date"

    def test_non_s3_has_no_content_sha256(self, signer, iam_credentials):
        headers = signer.sign(iam_credentials, "GET", "https://iam.amazonaws.com/")

        assert "x-amz-content-sha256" not in headers

    def test_signed_header_subset(self, signer, iam_credentials):
        headers = signer.sign(
            iam_credentials,
            "GET",
            "https://iam.amazonaws.com/",
            {"Content-Type": "text/plain", "User-Agent": "reqauth-test"},
            signed_header_names=["Content-Type"],
        )

        assert headers["User-Agent"] == "reqauth-test"
        signed = auth_fields(headers["Authorization"])["SignedHeaders"]
        assert signed == "content-type;host;x-amz-date"

    def test_existing_host_header_kept(self, signer, iam_credentials):
        headers = signer.sign(
            iam_credentials, "GET", "https://10.0.0.1/", {"Host": "iam.amazonaws.com"}
        )

        assert headers["Host"] == "iam.amazonaws.com"
        assert "host" not in headers

    def test_default_port_dropped_from_host(self, signer, iam_credentials):
        """Host is signed as the HTTP client sends it, without :443 or :80."""
        url = "https://iam.amazonaws.com/?Action=ListUsers&Version=2010-05-08"
        with_port = "https://iam.amazonaws.com:443/?Action=ListUsers&Version=2010-05-08"

        headers = signer.sign(iam_credentials, "GET", with_port)

        assert headers["host"] == "iam.amazonaws.com"
        assert headers == signer.sign(iam_credentials, "GET", url)
        plain = signer.sign(iam_credentials, "GET", "http://user:pw@example.com:80/")
        assert plain["host"] == "example.com"

    def test_other_port_kept_in_host(self, signer, iam_credentials):
        headers = signer.sign(iam_credentials, "GET", "https://iam.amazonaws.com:8443/")
        ipv6 = signer.sign(iam_credentials, "GET", "http://[::1]:80/")

        assert headers["host"] == "iam.amazonaws.com:8443"
        assert ipv6["host"] == "[::1]"

    def test_stale_signature_headers_replaced(self, signer, iam_credentials):
        headers = signer.sign(
            iam_credentials,
            "GET",
            "https://iam.amazonaws.com/",
            {"authorization": "old", "X-Amz-Date": "20000101T000000Z"},
        )

        assert "authorization" not in headers
        assert "X-Amz-Date" not in headers
        assert headers["x-amz-date"] == "20150830T123600Z"

    def test_naive_clock_is_utc(self, iam_credentials):
        naive = AwsSigV4Signer(clock=lambda: datetime(2015, 8, 30, 12, 36, 0))
        aware = AwsSigV4Signer(clock=fixed_clock)
        url = "https://iam.amazonaws.com/"

        assert naive.sign(iam_credentials, "GET", url) == aware.sign(iam_credentials, "GET", url)

    def test_header_with_newline_rejected(self, signer, iam_credentials):
        with pytest.raises(EncodingError):
            signer.sign(
                iam_credentials,
                "GET",
                "https://iam.amazonaws.com/",
                {"X-Custom": "a\r\nX-Injected: 1"},
            )

    def test_repr_hides_secret(self, iam_credentials):
        assert SECRET_KEY not in repr(iam_credentials)
        assert "AKIDEXAMPLE" in repr(iam_credentials)


class TestSigningKey:
    """Tests for the signing key derivation."""

    def test_derive_signing_key(self):
        key = derive_signing_key(SECRET_KEY, "20150830", "us-east-1", "iam")

        assert key.hex() == "c4afb1cc5771d871763a393e44b703571b55cc28424d1a5e86da6ed3c154a4b9"

    def test_credential_scope(self):
        assert credential_scope("20150830", "us-east-1", "iam") == (
            "20150830/us-east-1/iam/aws4_request"
        )


class TestCanonicalForms:
    """Tests for canonical request helpers."""

    def test_empty_path(self):
        assert canonical_uri("") == "/"

    def test_path_with_space(self):
        assert canonical_uri("/my path/file") == "/my%20path/file"

    def test_non_s3_encodes_escapes_again(self):
        assert canonical_uri("/a%20b") == "/a%2520b"

    def test_path_normalization(self):
        assert canonical_uri("/a/b/../c/./d/") == "/a/c/d/"
        assert canonical_uri("//a//b") == "/a/b"
        assert canonical_uri("/..") == "/"

    def test_s3_skips_normalization(self):
        assert canonical_uri("/bucket//a/../b", is_s3=True) == "/bucket//a/../b"

    def test_s3_encodes_once(self):
        assert canonical_uri("/bucket/key%3Avalue", is_s3=True) == "/bucket/key%3Avalue"
        assert canonical_uri("/bucket/my file.txt", is_s3=True) == "/bucket/my%20file.txt"

    def test_query_sorted_and_encoded(self):
        assert canonical_query_string("b=2&a=1&a=0") == "a=0&a=1&b=2"
        assert canonical_query_string("q=x y&flag=") == "flag=&q=x%20y"
        assert canonical_query_string("") == ""

    def test_canonical_headers(self):
        block, signed = canonical_headers(
            {"Host": "example.com", "X-Custom": "  a   b  c ", "x-amz-date": "20150830T123600Z"}
        )

        assert block == "host:example.com\nx-amz-date:20150830T123600Z\nx-custom:a b c\n"
        assert signed == "host;x-amz-date;x-custom"

    def test_duplicate_names_merged(self):
        block, signed = canonical_headers({"X-Dup": "1", "x-dup": "2"})

        assert block == "x-dup:1,2\n"
        assert signed == "x-dup"
