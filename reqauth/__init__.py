"""Request authentication for outgoing HTTP requests.

This package computes the headers that prove a request's authenticity:
- HTTP Digest (RFC 2617 / RFC 7616)
- OAuth 1.0a HMAC request signing (RFC 5849)
- AWS Signature Version 4
- OAuth 2.0 authorization code (with PKCE), client credentials and refresh flows
- Basic, bearer and API key headers for stored auth configurations
"""

from reqauth.aws_sigv4 import AwsSigV4Signer
from reqauth.credentials import (
    ApiKeyCredentials,
    AwsCredentials,
    BasicCredentials,
    BearerCredentials,
    DigestCredentials,
    NoAuth,
    OAuth1Credentials,
    OAuth2Config,
)
from reqauth.digest import DigestSigner, parse_digest_challenge
from reqauth.encoding import percent_encode
from reqauth.errors import (
    ConfigurationError,
    EncodingError,
    MalformedCallbackError,
    ProtocolMismatchError,
    ReqAuthError,
    UpstreamError,
)
from reqauth.header_builder import (
    AuthenticationResult,
    HttpRequest,
    RequestAuthenticator,
    build_api_key_auth,
    build_basic_auth_header,
    build_bearer_auth_header,
    build_request_auth,
)
from reqauth.oauth1 import OAuth1Signer
from reqauth.oauth2_flows import (
    FlowState,
    OAuth2FlowManager,
    OAuthToken,
    generate_pkce_pair,
    parse_callback_url,
)
from reqauth.randomness import RandomSource
from reqauth.schemes import AuthScheme, AuthType, parse_auth_config, parse_stored_auth

__all__ = [
    # Credentials
    "ApiKeyCredentials",
    "AwsCredentials",
    "BasicCredentials",
    "BearerCredentials",
    "DigestCredentials",
    "NoAuth",
    "OAuth1Credentials",
    "OAuth2Config",
    # Schemes
    "AuthScheme",
    "AuthType",
    "parse_auth_config",
    "parse_stored_auth",
    # Signers
    "AwsSigV4Signer",
    "DigestSigner",
    "OAuth1Signer",
    "parse_digest_challenge",
    "percent_encode",
    "RandomSource",
    # OAuth2 Flows
    "FlowState",
    "OAuth2FlowManager",
    "OAuthToken",
    "generate_pkce_pair",
    "parse_callback_url",
    # Header Builder
    "AuthenticationResult",
    "HttpRequest",
    "RequestAuthenticator",
    "build_api_key_auth",
    "build_basic_auth_header",
    "build_bearer_auth_header",
    "build_request_auth",
    # Errors
    "ReqAuthError",
    "ConfigurationError",
    "EncodingError",
    "ProtocolMismatchError",
    "MalformedCallbackError",
    "UpstreamError",
]
