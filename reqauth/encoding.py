"""Percent-encoding and header value checks shared by the signers."""

from __future__ import annotations

from urllib.parse import quote

from reqauth.errors import EncodingError

# RFC 3986 section 2.3 unreserved characters
UNRESERVED = frozenset(
    "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789-_.~"
)


def percent_encode(value: str, *, safe: str = "") -> str:
    """Percent-encode ``value`` leaving only RFC 3986 unreserved characters.

    Unlike form encoding, a space becomes ``%20`` and never ``+``. Hex
    digits are upper-case. Characters in ``safe`` are also left alone,
    which AWS uses to keep ``/`` in paths.

    Args:
        value: Text to encode; encoded as UTF-8 first
        safe: Additional characters that must not be encoded

    Returns:
        The encoded string
    """
    return quote(value.encode("utf-8"), safe=safe)


def ensure_header_value(name: str, value: str) -> str:
    """Validate that ``value`` can be sent as the value of header ``name``.

    Raises:
        EncodingError: If the value contains CR, LF or NUL, or is not
            representable in ISO-8859-1.
    """
    if any(ch in value for ch in "\r\n\x00"):
        raise EncodingError(f"Header {name!r} contains a line break or NUL")
    try:
        value.encode("latin-1")
    except UnicodeEncodeError as exc:
        raise EncodingError(f"Header {name!r} is not a valid header value: {exc}") from exc
    return value


def quoted_param(name: str, value: str) -> str:
    """Render ``name="value"`` for an auth-param in a challenge response.

    Raises:
        EncodingError: If the value cannot sit inside a quoted-string.
    """
    if '"' in value or "\\" in value:
        raise EncodingError(f"Parameter {name!r} cannot be embedded in a quoted string")
    ensure_header_value(name, value)
    return f'{name}="{value}"'
