"""OAuth 1.0a request signing (RFC 5849).

Produces the ``Authorization: OAuth ...`` header for a request. Only the
HMAC signature methods are implemented, and each method name commits to
its hash: ``HMAC-SHA1`` signs with SHA-1 as RFC 5849 requires,
``HMAC-SHA256`` with SHA-256.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import logging
import time
from typing import Callable, Dict, Mapping, Optional
from urllib.parse import parse_qsl, urlsplit, urlunsplit

from reqauth.credentials import OAuth1Credentials
from reqauth.encoding import ensure_header_value, percent_encode, quoted_param
from reqauth.errors import ConfigurationError
from reqauth.randomness import RandomSource, default_random

logger = logging.getLogger(__name__)

NONCE_LENGTH = 32

SIGNATURE_METHODS = {
    "HMAC-SHA1": hashlib.sha1,
    "HMAC-SHA256": hashlib.sha256,
}

_DEFAULT_PORTS = {"http": 80, "https": 443}


def normalize_url(url: str) -> str:
    """Return the base string URI for ``url`` (RFC 5849 section 3.4.1.2).

    Scheme and host are lower-cased, a default port is dropped, and the
    query and fragment are removed.
    """
    parts = urlsplit(url)
    scheme = parts.scheme.lower()
    host = (parts.hostname or "").lower()
    if ":" in host:
        host = f"[{host}]"
    if parts.port and parts.port != _DEFAULT_PORTS.get(scheme):
        host = f"{host}:{parts.port}"
    return urlunsplit((scheme, host, parts.path or "/", "", ""))


def normalize_parameters(params: Mapping[str, str]) -> str:
    """Encode every pair, sort by encoded name then value, and join with ``&``."""
    encoded = sorted((percent_encode(str(k)), percent_encode(str(v))) for k, v in params.items())
    return "&".join(f"{k}={v}" for k, v in encoded)


def signature_base_string(method: str, url: str, params: Mapping[str, str]) -> str:
    """Build ``METHOD&encoded-url&encoded-parameters``."""
    return "&".join(
        [
            percent_encode(method.upper()),
            percent_encode(normalize_url(url)),
            percent_encode(normalize_parameters(params)),
        ]
    )


def signing_key(consumer_secret: str, token_secret: Optional[str] = None) -> str:
    return f"{percent_encode(consumer_secret)}&{percent_encode(token_secret or '')}"


class OAuth1Signer:
    """Signs requests with OAuth 1.0a credentials.

    The nonce and timestamp are fresh on every call. Both sources are
    injectable: ``random_source`` supplies the nonce and ``clock`` returns
    the current Unix time in seconds.
    """

    def __init__(
        self,
        random_source: Optional[RandomSource] = None,
        clock: Optional[Callable[[], float]] = None,
    ):
        self._random = random_source or default_random
        self._clock = clock or time.time

    def generate(
        self,
        credentials: OAuth1Credentials,
        method: str,
        url: str,
        extra_params: Optional[Mapping[str, str]] = None,
    ) -> str:
        """Return the ``Authorization`` header value for one request.

        Args:
            credentials: Consumer and token credentials
            method: HTTP method
            url: Request URL; its query parameters are signed too
            extra_params: Form body parameters taking part in the signature

        Raises:
            ConfigurationError: If the signature method is not supported
            EncodingError: If the realm cannot be sent in the header
        """
        hash_fn = SIGNATURE_METHODS.get(credentials.signature_method.upper())
        if hash_fn is None:
            raise ConfigurationError(
                f"Unsupported signature method: {credentials.signature_method}"
            )

        oauth_params = self.protocol_parameters(credentials)

        # Later sources overwrite earlier ones on name collisions.
        all_params: Dict[str, str] = dict(oauth_params)
        all_params.update(parse_qsl(urlsplit(url).query, keep_blank_values=True))
        if extra_params:
            all_params.update({str(k): str(v) for k, v in extra_params.items()})

        base_string = signature_base_string(method, url, all_params)
        logger.debug("OAuth1 signature base string: %s", base_string)

        key = signing_key(credentials.consumer_secret, credentials.token_secret)
        digest = hmac.new(key.encode("utf-8"), base_string.encode("utf-8"), hash_fn).digest()
        oauth_params["oauth_signature"] = base64.b64encode(digest).decode("ascii")

        parts = []
        if credentials.realm is not None:
            parts.append(quoted_param("realm", credentials.realm))
        parts.extend(
            f'{percent_encode(k)}="{percent_encode(v)}"' for k, v in sorted(oauth_params.items())
        )
        return ensure_header_value("Authorization", f"OAuth {', '.join(parts)}")

    def protocol_parameters(self, credentials: OAuth1Credentials) -> Dict[str, str]:
        """Return the ``oauth_*`` parameters for a new request, without signature."""
        params = {
            "oauth_consumer_key": credentials.consumer_key,
            "oauth_nonce": self._random.alphanumeric(NONCE_LENGTH),
            "oauth_signature_method": credentials.signature_method.upper(),
            "oauth_timestamp": str(int(self._clock())),
            "oauth_version": credentials.version,
        }
        if credentials.token:
            params["oauth_token"] = credentials.token
        if credentials.callback:
            params["oauth_callback"] = credentials.callback
        if credentials.verifier:
            params["oauth_verifier"] = credentials.verifier
        return params
