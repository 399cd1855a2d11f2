"""AWS Signature Version 4 request signing.

Implements the four SigV4 steps: canonical request, string to sign,
signing key derivation and signature. The canonical forms follow the
AWS rules for URI encoding (RFC 3986 unreserved set, upper-case hex) and
header normalization.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import re
from datetime import datetime, timezone
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Tuple, Union
from urllib.parse import parse_qsl, unquote, urlsplit

from reqauth.credentials import AwsCredentials
from reqauth.encoding import ensure_header_value, percent_encode

logger = logging.getLogger(__name__)

ALGORITHM = "AWS4-HMAC-SHA256"
TERMINATOR = "aws4_request"

AMZ_DATE_FORMAT = "%Y%m%dT%H%M%SZ"
DATE_STAMP_FORMAT = "%Y%m%d"

_WHITESPACE_RE = re.compile(r"\s+")

_DEFAULT_PORTS = {"http": 80, "https": 443}


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _host_header(url: str) -> str:
    """Host as an HTTP client sends it: no userinfo, default port dropped."""
    parts = urlsplit(url)
    host = parts.netloc.rpartition("@")[2]
    if parts.port is not None and parts.port == _DEFAULT_PORTS.get(parts.scheme.lower()):
        host = host[: host.rfind(":")]
    return host


def _sha256_hex(data: bytes) -> str:
    return hashlib.sha256(data).hexdigest()


def _hmac_sha256(key: bytes, msg: str) -> bytes:
    return hmac.new(key, msg.encode("utf-8"), hashlib.sha256).digest()


def _remove_dot_segments(path: str) -> str:
    normalized: List[str] = []
    for part in path.split("/"):
        if part == "..":
            if normalized:
                normalized.pop()
        elif part not in (".", ""):
            normalized.append(part)
    result = "/" + "/".join(normalized)
    if path.endswith("/") and normalized:
        result += "/"
    return result


def canonical_uri(path: str, *, is_s3: bool = False) -> str:
    """Build the canonical URI from a request path.

    S3 decodes the path and encodes it once, keeping ``.`` and ``..``
    segments and repeated slashes. Every other service normalizes the
    path and encodes it as sent, so existing escapes are encoded a second
    time.
    """
    if not path:
        return "/"
    if is_s3:
        return percent_encode(unquote(path), safe="/")
    return percent_encode(_remove_dot_segments(path), safe="/")


def canonical_query_string(query: str) -> str:
    """Encode every query pair and sort by name, then value."""
    pairs = parse_qsl(query, keep_blank_values=True)
    encoded = sorted((percent_encode(k), percent_encode(v)) for k, v in pairs)
    return "&".join(f"{k}={v}" for k, v in encoded)


def canonical_headers(headers: Mapping[str, str]) -> Tuple[str, str]:
    """Return ``(canonical_headers, signed_headers)`` for ``headers``.

    Names are lower-cased and sorted; values trimmed with inner runs of
    whitespace collapsed. Names differing only by case are merged with a
    comma. The canonical block ends with a newline.
    """
    merged: Dict[str, List[str]] = {}
    for name, value in headers.items():
        ensure_header_value(name, value)
        normalized = _WHITESPACE_RE.sub(" ", value.strip())
        merged.setdefault(name.strip().lower(), []).append(normalized)

    names = sorted(merged)
    block = "".join(f"{name}:{','.join(merged[name])}\n" for name in names)
    return block, ";".join(names)


def credential_scope(date_stamp: str, region: str, service: str) -> str:
    return f"{date_stamp}/{region}/{service}/{TERMINATOR}"


def derive_signing_key(secret_key: str, date_stamp: str, region: str, service: str) -> bytes:
    """Walk the HMAC chain date -> region -> service -> ``aws4_request``."""
    k_date = _hmac_sha256(f"AWS4{secret_key}".encode("utf-8"), date_stamp)
    k_region = _hmac_sha256(k_date, region)
    k_service = _hmac_sha256(k_region, service)
    return _hmac_sha256(k_service, TERMINATOR)


class AwsSigV4Signer:
    """Signs requests with AWS Signature Version 4.

    Args:
        clock: Returns the signing instant; defaults to the current UTC time.
            ``x-amz-date`` and the credential scope are both taken from a
            single call.
    """

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or _utcnow

    def sign(
        self,
        credentials: AwsCredentials,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Union[bytes, str, None] = b"",
        signed_header_names: Optional[Iterable[str]] = None,
    ) -> Dict[str, str]:
        """Return ``headers`` plus ``x-amz-date``, ``Authorization`` and friends.

        ``host`` is added from the URL when missing, and ``x-amz-security-token``
        when the credentials carry a session token. For S3,
        ``x-amz-content-sha256`` is added as well.

        Args:
            credentials: Access key pair and scope
            method: HTTP method
            url: Full request URL
            headers: Headers that will be sent with the request
            body: Request payload
            signed_header_names: Restrict signing to these header names; ``host``
                and ``x-amz-date`` are always signed. Defaults to every header.

        Returns:
            New header dictionary to send with the request

        Raises:
            EncodingError: If a header value is not a valid header string
        """
        now = self._clock()
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        now = now.astimezone(timezone.utc)
        amz_date = now.strftime(AMZ_DATE_FORMAT)
        date_stamp = now.strftime(DATE_STAMP_FORMAT)

        if body is None:
            body = b""
        if isinstance(body, str):
            body = body.encode("utf-8")
        payload_hash = _sha256_hex(body)
        is_s3 = credentials.service == "s3"

        replaced = {"authorization", "x-amz-date"}
        if credentials.session_token:
            replaced.add("x-amz-security-token")
        result = {k: v for k, v in (headers or {}).items() if k.lower() not in replaced}
        present = {k.lower() for k in result}
        parts = urlsplit(url)
        if "host" not in present:
            result["host"] = _host_header(url)
        result["x-amz-date"] = amz_date
        if credentials.session_token:
            result["x-amz-security-token"] = credentials.session_token
        if is_s3 and "x-amz-content-sha256" not in present:
            result["x-amz-content-sha256"] = payload_hash

        to_sign = result
        if signed_header_names is not None:
            wanted = {name.lower() for name in signed_header_names} | {"host", "x-amz-date"}
            to_sign = {k: v for k, v in result.items() if k.lower() in wanted}

        # Step 1: canonical request
        header_block, signed_headers = canonical_headers(to_sign)
        canonical_request = "\n".join(
            [
                method.upper(),
                canonical_uri(parts.path, is_s3=is_s3),
                canonical_query_string(parts.query),
                header_block,
                signed_headers,
                payload_hash,
            ]
        )
        logger.debug("SigV4 canonical request:\n%s", canonical_request)

        # Step 2: string to sign
        scope = credential_scope(date_stamp, credentials.region, credentials.service)
        string_to_sign = "\n".join(
            [ALGORITHM, amz_date, scope, _sha256_hex(canonical_request.encode("utf-8"))]
        )

        # Steps 3 and 4: signing key and signature
        key = derive_signing_key(
            credentials.secret_key, date_stamp, credentials.region, credentials.service
        )
        signature = hmac.new(key, string_to_sign.encode("utf-8"), hashlib.sha256).hexdigest()

        result["Authorization"] = (
            f"{ALGORITHM} Credential={credentials.access_key}/{scope}, "
            f"SignedHeaders={signed_headers}, Signature={signature}"
        )
        ensure_header_value("Authorization", result["Authorization"])
        return result