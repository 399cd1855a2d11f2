"""Tests for reqauth.digest module."""

import hashlib
import re

import pytest

from reqauth.credentials import DigestCredentials
from reqauth.digest import DigestSigner, parse_digest_challenge
from reqauth.errors import ConfigurationError, EncodingError
from reqauth.randomness import RandomSource


class FixedRandom(RandomSource):
    def __init__(self, value="0a4f113b"):
        self.value = value

    def alphanumeric(self, length=32):
        return self.value


def md5_hex(value):
    return hashlib.md5(value.encode()).hexdigest()


def header_params(header):
    """Split a Digest header into its name/value pairs, unquoting values."""
    assert header.startswith("Digest ")
    return {
        name: quoted if quoted else token
        for name, quoted, token in re.findall(r'(\w+)=(?:"([^"]*)"|([^\s,]+))', header[7:])
    }


@pytest.fixture
def rfc_credentials():
    """Example from RFC 2617 section 3.5."""
    return DigestCredentials(
        username="Mufasa",
        password="Circle Of Life",
        realm="testrealm@host.com",
        nonce="dcd98b7102dd2f0e8b11d0f600bfb0c093",
        uri="/dir/index.html",
        method="GET",
        qop="auth",
        nc="00000001",
        cnonce="0a4f113b",
        opaque="5ccc069c403ebaf9f0171e9517f40e41",
    )


class TestDigestSigner:
    """Tests for DigestSigner.generate."""

    def test_rfc2617_example(self, rfc_credentials):
        header = DigestSigner().generate(rfc_credentials)

        assert header == (
            'Digest username="Mufasa", realm="testrealm@host.com", '
            'nonce="dcd98b7102dd2f0e8b11d0f600bfb0c093", uri="/dir/index.html", '
            'response="6629fae49393a05397450978507c4ef1", qop=auth, nc="00000001", '
            'cnonce="0a4f113b", opaque="5ccc069c403ebaf9f0171e9517f40e41"'
        )

    def test_generated_cnonce_is_the_one_hashed(self, rfc_credentials):
        """The emitted cnonce must be the value used in the response hash."""
        credentials = DigestCredentials(
            username=rfc_credentials.username,
            password=rfc_credentials.password,
            realm=rfc_credentials.realm,
            nonce=rfc_credentials.nonce,
            uri=rfc_credentials.uri,
            qop="auth",
        )
        signer = DigestSigner()

        params = header_params(signer.generate(credentials))

        assert re.fullmatch(r"[A-Za-z0-9]{32}", params["cnonce"])
        assert params["nc"] == "00000001"
        assert params["response"] == signer.compute_response(
            credentials, params["nc"], params["cnonce"]
        )

    def test_injected_random_supplies_cnonce(self, rfc_credentials):
        credentials = DigestCredentials(
            username="Mufasa",
            password="Circle Of Life",
            realm="testrealm@host.com",
            nonce="dcd98b7102dd2f0e8b11d0f600bfb0c093",
            uri="/dir/index.html",
            qop="auth",
            opaque="5ccc069c403ebaf9f0171e9517f40e41",
        )

        header = DigestSigner(FixedRandom("0a4f113b")).generate(credentials)

        assert header == DigestSigner().generate(rfc_credentials)

    def test_fresh_cnonce_per_call(self):
        credentials = DigestCredentials("u", "p", "r", "n", "/", qop="auth")
        signer = DigestSigner()

        first = header_params(signer.generate(credentials))["cnonce"]
        second = header_params(signer.generate(credentials))["cnonce"]

        assert first != second

    def test_without_qop(self):
        """RFC 2069 compatibility: no qop, nc or cnonce."""
        credentials = DigestCredentials("user", "pass", "realm", "abc", "/x", method="POST")

        header = DigestSigner().generate(credentials)
        params = header_params(header)

        ha1 = md5_hex("user:realm:pass")
        ha2 = md5_hex("POST:/x")
        assert params["response"] == md5_hex(f"{ha1}:abc:{ha2}")
        assert "qop" not in params
        assert "nc" not in params
        assert "cnonce" not in params
        assert "opaque" not in params

    def test_auth_int_hashes_body(self):
        credentials = DigestCredentials(
            "user", "pass", "realm", "abc", "/x", method="PUT", qop="auth-int", cnonce="c"
        )
        signer = DigestSigner()

        params = header_params(signer.generate(credentials, b"payload"))

        ha1 = md5_hex("user:realm:pass")
        ha2 = md5_hex(f"PUT:/x:{md5_hex('payload')}")
        assert params["response"] == md5_hex(f"{ha1}:abc:00000001:c:auth-int:{ha2}")
        assert params["qop"] == "auth-int"
        assert signer.generate(credentials, b"other") != signer.generate(credentials, b"payload")

    def test_md5_sess(self):
        credentials = DigestCredentials(
            "user", "pass", "realm", "abc", "/x", qop="auth", cnonce="c", algorithm="MD5-sess"
        )

        header = DigestSigner().generate(credentials)
        params = header_params(header)

        ha1 = md5_hex(f"{md5_hex('user:realm:pass')}:abc:c")
        ha2 = md5_hex("GET:/x")
        assert params["response"] == md5_hex(f"{ha1}:abc:00000001:c:auth:{ha2}")
        assert "algorithm=MD5-sess" in header

    def test_sha256(self):
        credentials = DigestCredentials(
            "user", "pass", "realm", "abc", "/x", qop="auth", cnonce="c", algorithm="SHA-256"
        )

        params = header_params(DigestSigner().generate(credentials))

        def sha(value):
            return hashlib.sha256(value.encode()).hexdigest()

        ha1 = sha("user:realm:pass")
        ha2 = sha("GET:/x")
        assert params["response"] == sha(f"{ha1}:abc:00000001:c:auth:{ha2}")
        assert params["algorithm"] == "SHA-256"

    def test_algorithm_omitted_when_not_set(self, rfc_credentials):
        assert "algorithm" not in DigestSigner().generate(rfc_credentials)

    def test_unsupported_algorithm(self):
        credentials = DigestCredentials("u", "p", "r", "n", "/", algorithm="SHA-512-256")

        with pytest.raises(ConfigurationError):
            DigestSigner().generate(credentials)

    def test_unsupported_qop(self):
        credentials = DigestCredentials("u", "p", "r", "n", "/", qop="bogus")

        with pytest.raises(ConfigurationError):
            DigestSigner().generate(credentials)

    @pytest.mark.parametrize("algorithm", ["MD5-sess", "SHA-256-sess"])
    def test_sess_without_qop_rejected(self, algorithm):
        """A -sess HA1 hashes a cnonce, which is only sent with qop."""
        credentials = DigestCredentials("u", "p", "r", "n", "/x", algorithm=algorithm)

        with pytest.raises(ConfigurationError, match="requires a qop"):
            DigestSigner().generate(credentials)

    def test_quote_in_username_rejected(self):
        credentials = DigestCredentials('bad"user', "p", "r", "n", "/")

        with pytest.raises(EncodingError):
            DigestSigner().generate(credentials)

    def test_newline_in_uri_rejected(self):
        credentials = DigestCredentials("u", "p", "r", "n", "/x\r\nX-Evil: 1")

        with pytest.raises(EncodingError):
            DigestSigner().generate(credentials)


class TestParseDigestChallenge:
    """Tests for parse_digest_challenge."""

    def test_rfc_challenge(self):
        challenge = parse_digest_challenge(
            'Digest realm="testrealm@host.com", qop="auth,auth-int", '
            'nonce="dcd98b7102dd2f0e8b11d0f600bfb0c093", '
            'opaque="5ccc069c403ebaf9f0171e9517f40e41"'
        )

        assert challenge == {
            "realm": "testrealm@host.com",
            "qop": "auth,auth-int",
            "nonce": "dcd98b7102dd2f0e8b11d0f600bfb0c093",
            "opaque": "5ccc069c403ebaf9f0171e9517f40e41",
        }

    def test_token_values_and_case(self):
        challenge = parse_digest_challenge(
            'digest Realm="r", NONCE="n", algorithm=MD5-sess, stale=FALSE'
        )

        assert challenge["realm"] == "r"
        assert challenge["nonce"] == "n"
        assert challenge["algorithm"] == "MD5-sess"
        assert challenge["stale"] == "FALSE"

    def test_escaped_quote(self):
        challenge = parse_digest_challenge(r'Digest realm="say \"hi\"", nonce="n"')

        assert challenge["realm"] == 'say "hi"'

    def test_not_digest(self):
        with pytest.raises(ConfigurationError):
            parse_digest_challenge('Basic realm="x"')
