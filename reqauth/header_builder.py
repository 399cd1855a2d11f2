"""HTTP header construction from authentication credentials.

Builds the headers and query parameters that authenticate one outgoing
request, dispatching on the credential type produced by
:func:`reqauth.schemes.parse_auth_config`.
"""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Dict, Optional, Union
from urllib.parse import parse_qsl, quote, urlencode, urlsplit, urlunsplit

from reqauth.aws_sigv4 import AwsSigV4Signer
from reqauth.credentials import (
    ApiKeyCredentials,
    AwsCredentials,
    BasicCredentials,
    BearerCredentials,
    DigestCredentials,
    NoAuth,
    OAuth1Credentials,
)
from reqauth.digest import DigestSigner
from reqauth.encoding import ensure_header_value
from reqauth.errors import ConfigurationError
from reqauth.oauth1 import OAuth1Signer
from reqauth.randomness import RandomSource
from reqauth.schemes import AuthScheme

logger = logging.getLogger(__name__)

FORM_CONTENT_TYPE = "application/x-www-form-urlencoded"


@dataclass
class HttpRequest:
    """Facts about an outgoing request that signers may cover.

    Attributes:
        method: HTTP method
        url: Full request URL including query string
        headers: Headers the caller will send
        body: Request payload
        params: Query parameters appended to ``url`` when the request is sent
    """

    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Union[bytes, str] = b""
    params: Dict[str, str] = field(default_factory=dict)

    @property
    def full_url(self) -> str:
        """``url`` with ``params`` appended to its query string."""
        if not self.params:
            return self.url
        parts = urlsplit(self.url)
        extra = urlencode(self.params, quote_via=quote)
        query = f"{parts.query}&{extra}" if parts.query else extra
        return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))

    @property
    def request_uri(self) -> str:
        """Path and query as they appear on the request line."""
        parts = urlsplit(self.full_url)
        uri = parts.path or "/"
        if parts.query:
            uri = f"{uri}?{parts.query}"
        return uri

    def form_params(self) -> Dict[str, str]:
        """Body parameters of a form-encoded request, else an empty dict."""
        content_type = next(
            (v for k, v in self.headers.items() if k.lower() == "content-type"), ""
        )
        if not content_type.lower().startswith(FORM_CONTENT_TYPE) or not self.body:
            return {}
        body = self.body.decode("utf-8") if isinstance(self.body, bytes) else self.body
        return dict(parse_qsl(body, keep_blank_values=True))


@dataclass
class AuthenticationResult:
    """Result of building authentication for a request.

    Attributes:
        headers: HTTP headers to include
        query_params: Query parameters to include
        cookies: Cookies to include
    """

    headers: Dict[str, str] = field(default_factory=dict)
    query_params: Dict[str, str] = field(default_factory=dict)
    cookies: Dict[str, str] = field(default_factory=dict)

    def merge(self, other: "AuthenticationResult") -> "AuthenticationResult":
        """Merge another result into this one."""
        return AuthenticationResult(
            headers={**self.headers, **other.headers},
            query_params={**self.query_params, **other.query_params},
            cookies={**self.cookies, **other.cookies},
        )


def build_basic_auth_header(username: str, password: str) -> str:
    """Build HTTP Basic Authentication header value.

    Args:
        username: Username
        password: Password

    Returns:
        Header value string (e.g., "Basic dXNlcjpwYXNz")
    """
    credentials = f"{username}:{password}"
    encoded = base64.b64encode(credentials.encode()).decode()
    return f"Basic {encoded}"


def build_bearer_auth_header(token: str) -> str:
    """Build HTTP Bearer Authentication header value.

    Args:
        token: Bearer token

    Returns:
        Header value string (e.g., "Bearer abc123")
    """
    return ensure_header_value("Authorization", f"Bearer {token}")


def build_api_key_auth(credentials: ApiKeyCredentials) -> AuthenticationResult:
    """Build authentication for an API key.

    Returns:
        AuthenticationResult with the key in a header or query parameter
    """
    result = AuthenticationResult()

    if credentials.location == "query":
        result.query_params[credentials.key] = credentials.value
    else:
        result.headers[credentials.key] = ensure_header_value(credentials.key, credentials.value)

    return result


class RequestAuthenticator:
    """Applies any supported credential type to an :class:`HttpRequest`.

    Holds one signer per scheme; the random source and clocks are passed
    through so tests can make signatures reproducible.
    """

    def __init__(
        self,
        random_source: Optional[RandomSource] = None,
        oauth1_clock: Optional[Callable[[], float]] = None,
        aws_clock: Optional[Callable[[], datetime]] = None,
    ):
        self.digest = DigestSigner(random_source)
        self.oauth1 = OAuth1Signer(random_source, clock=oauth1_clock)
        self.aws = AwsSigV4Signer(clock=aws_clock)

    def authenticate(self, scheme: AuthScheme, request: HttpRequest) -> AuthenticationResult:
        """Build authentication for any supported credential type.

        Args:
            scheme: Credential object from :func:`parse_auth_config`
            request: The request to authenticate

        Returns:
            AuthenticationResult with appropriate auth data. For AWS the
            headers hold the complete signed header set.

        Raises:
            ConfigurationError: If the scheme type is unknown or misconfigured
            EncodingError: If a value cannot be sent in a header
        """
        logger.debug("Applying %s to %s %s", type(scheme).__name__, request.method, request.url)
        result = AuthenticationResult()

        if isinstance(scheme, NoAuth):
            return result

        elif isinstance(scheme, BasicCredentials):
            result.headers["Authorization"] = build_basic_auth_header(
                scheme.username, scheme.password
            )

        elif isinstance(scheme, BearerCredentials):
            result.headers["Authorization"] = build_bearer_auth_header(scheme.token)

        elif isinstance(scheme, ApiKeyCredentials):
            return build_api_key_auth(scheme)

        elif isinstance(scheme, DigestCredentials):
            result.headers["Authorization"] = self.digest.generate(scheme, request.body)

        elif isinstance(scheme, OAuth1Credentials):
            result.headers["Authorization"] = self.oauth1.generate(
                scheme, request.method, request.full_url, request.form_params()
            )

        elif isinstance(scheme, AwsCredentials):
            result.headers = self.aws.sign(
                scheme, request.method, request.full_url, request.headers, request.body
            )

        else:
            raise ConfigurationError(f"Unknown scheme type: {type(scheme).__name__}")

        return result


def build_request_auth(scheme: AuthScheme, request: HttpRequest) -> AuthenticationResult:
    """Authenticate ``request`` with default random source and clocks."""
    return RequestAuthenticator().authenticate(scheme, request)
