"""Auth scheme tags and parsing of stored auth configurations.

A saved request stores its authentication as a type tag plus a flat map
of string values. :func:`parse_auth_config` turns that pair into exactly
one typed credential object, so dispatch happens once at this boundary.
"""

from __future__ import annotations

import json
import logging
from enum import Enum
from typing import Any, Dict, Optional, Union

from reqauth.credentials import (
    ApiKeyCredentials,
    AwsCredentials,
    BasicCredentials,
    BearerCredentials,
    DigestCredentials,
    NoAuth,
    OAuth1Credentials,
)
from reqauth.errors import ConfigurationError

logger = logging.getLogger(__name__)


class AuthType(str, Enum):
    """Supported authentication schemes, valued by their stored tag."""

    NONE = "none"
    BEARER = "bearer"
    BASIC = "basic"
    API_KEY = "api-key"
    OAUTH2 = "oauth2"
    OAUTH1 = "oauth1"
    DIGEST = "digest"
    AWS_SIGNATURE = "aws-signature"


AuthScheme = Union[
    NoAuth,
    BearerCredentials,
    BasicCredentials,
    ApiKeyCredentials,
    OAuth1Credentials,
    DigestCredentials,
    AwsCredentials,
]


def _parse_oauth2(data: Dict[str, Any]) -> BearerCredentials:
    """An OAuth 2.0 config is applied through the access token it produced."""
    if not data.get("access_token"):
        raise ConfigurationError(
            "oauth2 configuration has no access_token; run an OAuth2 flow first"
        )
    return BearerCredentials(token=data["access_token"])


_PARSERS = {
    AuthType.BEARER: BearerCredentials.from_dict,
    AuthType.BASIC: BasicCredentials.from_dict,
    AuthType.API_KEY: ApiKeyCredentials.from_dict,
    AuthType.OAUTH2: _parse_oauth2,
    AuthType.OAUTH1: OAuth1Credentials.from_dict,
    AuthType.DIGEST: DigestCredentials.from_dict,
    AuthType.AWS_SIGNATURE: AwsCredentials.from_dict,
}


def parse_auth_type(value: Union[str, AuthType, None]) -> AuthType:
    """Resolve a stored tag to an :class:`AuthType`.

    Raises:
        ConfigurationError: If the tag is unknown
    """
    if value is None or value == "":
        return AuthType.NONE
    try:
        return AuthType(value)
    except ValueError:
        raise ConfigurationError(f"Unknown auth type: {value}")


def parse_auth_config(
    auth_type: Union[str, AuthType, None],
    data: Optional[Dict[str, Any]] = None,
) -> AuthScheme:
    """Parse a stored ``{type, data}`` auth configuration.

    Args:
        auth_type: Scheme tag, e.g. "digest" or "aws-signature"
        data: Scheme values as stored with the request

    Returns:
        The credential object for that scheme

    Raises:
        ConfigurationError: For unknown tags or missing required values
    """
    scheme_type = parse_auth_type(auth_type)
    if scheme_type is AuthType.NONE:
        return NoAuth()
    return _PARSERS[scheme_type](data or {})


def parse_stored_auth(auth_type: Optional[str], auth_data: Optional[str]) -> AuthScheme:
    """Parse the ``auth_type``/``auth_data`` columns of a saved request.

    ``auth_data`` is the JSON-encoded value map.
    """
    if not auth_type or not auth_data:
        return NoAuth()
    try:
        data = json.loads(auth_data)
    except json.JSONDecodeError as exc:
        logger.error("Stored auth data for %s is not valid JSON: %s", auth_type, exc)
        raise ConfigurationError(f"Invalid auth data for {auth_type}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Auth data for {auth_type} must be an object")
    return parse_auth_config(auth_type, data)

