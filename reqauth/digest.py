"""HTTP Digest Access Authentication (RFC 2617 / RFC 7616).

Builds the ``Authorization: Digest ...`` header answering a server
challenge. MD5 stays the default because servers still issuing Digest
challenges overwhelmingly expect it.
"""

from __future__ import annotations

import hashlib
import logging
import re
from typing import Any, Callable, Dict, Optional, Tuple, Union

from reqauth.credentials import DigestCredentials
from reqauth.encoding import ensure_header_value, quoted_param
from reqauth.errors import ConfigurationError
from reqauth.randomness import RandomSource, default_random

logger = logging.getLogger(__name__)

DEFAULT_NONCE_COUNT = "00000001"
CNONCE_LENGTH = 32

_HASHES: Dict[str, Callable[..., Any]] = {
    "MD5": hashlib.md5,
    "SHA-256": hashlib.sha256,
}

# auth-param = token "=" ( token / quoted-string )
_CHALLENGE_PARAM_RE = re.compile(r'([A-Za-z0-9_-]+)\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s,]+))')


def parse_digest_challenge(www_authenticate: str) -> Dict[str, str]:
    """Parse a ``WWW-Authenticate: Digest ...`` challenge into its parameters.

    Parameter names are lower-cased; quoted values are unescaped.

    Raises:
        ConfigurationError: If the header is not a Digest challenge.
    """
    scheme, _, params = www_authenticate.strip().partition(" ")
    if scheme.lower() != "digest":
        raise ConfigurationError(f"Not a Digest challenge: {scheme or www_authenticate!r}")

    challenge = {}
    for match in _CHALLENGE_PARAM_RE.finditer(params):
        name, quoted, token = match.groups()
        if quoted is not None:
            value = re.sub(r"\\(.)", r"\1", quoted)
        else:
            value = token
        challenge[name.lower()] = value
    return challenge


class DigestSigner:
    """Computes Digest ``Authorization`` header values.

    Stateless apart from the injected random source, so one instance can
    be shared between threads.
    """

    def __init__(self, random_source: Optional[RandomSource] = None):
        self._random = random_source or default_random

    def generate(self, credentials: DigestCredentials, body: Union[bytes, str] = b"") -> str:
        """Return the ``Authorization`` header value for ``credentials``.

        The nonce count and client nonce are resolved once, so the values
        hashed into ``response`` are exactly the ones emitted in the header.

        Args:
            credentials: Challenge and account data for one request
            body: Entity body, only hashed for ``qop=auth-int``

        Raises:
            ConfigurationError: For an unsupported algorithm or qop, or a
                ``-sess`` algorithm without qop
            EncodingError: If a value cannot be embedded in the header
        """
        _, sess = _resolve_algorithm(credentials)
        qop = credentials.qop.lower() if credentials.qop else None
        if qop not in (None, "auth", "auth-int"):
            raise ConfigurationError(f"Unsupported digest qop: {credentials.qop}")
        # cnonce is only sent alongside qop, so a -sess HA1 needs qop too
        if sess and not qop:
            raise ConfigurationError(f"Digest algorithm {credentials.algorithm} requires a qop")

        nc = credentials.nc or DEFAULT_NONCE_COUNT
        cnonce = credentials.cnonce or self._random.alphanumeric(CNONCE_LENGTH)

        response = self.compute_response(credentials, nc, cnonce, body)
        logger.debug(
            "Digest response computed for %s %s (qop=%s)", credentials.method, credentials.uri, qop
        )

        parts = [
            quoted_param("username", credentials.username),
            quoted_param("realm", credentials.realm),
            quoted_param("nonce", credentials.nonce),
            quoted_param("uri", credentials.uri),
        ]
        if credentials.algorithm:
            parts.append(f"algorithm={ensure_header_value('algorithm', credentials.algorithm)}")
        parts.append(quoted_param("response", response))
        if qop:
            parts.append(f"qop={qop}")
            parts.append(quoted_param("nc", nc))
            parts.append(quoted_param("cnonce", cnonce))
        if credentials.opaque is not None:
            parts.append(quoted_param("opaque", credentials.opaque))

        return f"Digest {', '.join(parts)}"

    def compute_response(
        self,
        credentials: DigestCredentials,
        nc: str,
        cnonce: str,
        body: Union[bytes, str] = b"",
    ) -> str:
        """Compute the hex ``response`` value for fully resolved inputs."""
        hash_fn, sess = _resolve_algorithm(credentials)

        def h(value: str) -> str:
            return hash_fn(value.encode("utf-8")).hexdigest()

        ha1 = h(f"{credentials.username}:{credentials.realm}:{credentials.password}")
        if sess:
            ha1 = h(f"{ha1}:{credentials.nonce}:{cnonce}")

        qop = credentials.qop.lower() if credentials.qop else None
        if qop == "auth-int":
            if isinstance(body, str):
                body = body.encode("utf-8")
            body_hash = hash_fn(body).hexdigest()
            ha2 = h(f"{credentials.method}:{credentials.uri}:{body_hash}")
        else:
            ha2 = h(f"{credentials.method}:{credentials.uri}")

        if qop:
            return h(f"{ha1}:{credentials.nonce}:{nc}:{cnonce}:{qop}:{ha2}")
        return h(f"{ha1}:{credentials.nonce}:{ha2}")


def _resolve_algorithm(credentials: DigestCredentials) -> Tuple[Callable[..., Any], bool]:
    """Return the hash constructor and whether the ``-sess`` variant applies."""
    algorithm = (credentials.algorithm or "MD5").upper()
    sess = algorithm.endswith("-SESS")
    hash_fn = _HASHES.get(algorithm[:-5] if sess else algorithm)
    if hash_fn is None:
        raise ConfigurationError(f"Unsupported digest algorithm: {credentials.algorithm}")
    return hash_fn, sess
