"""OAuth 2.0 flow implementations.

Provides the grant types a client needs to obtain bearer tokens:
- Authorization Code (RFC 6749 Section 4.1) with PKCE (RFC 7636)
- Client Credentials (RFC 6749 Section 4.4)
- Refresh Token (RFC 6749 Section 6)

The authorization code flow is split in two calls that may run in
different processes. The correlation data (CSRF state and PKCE verifier)
is handed to the caller as a :class:`FlowState` value and must be passed
back for the exchange.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple
from urllib.parse import parse_qs, urlencode, urlsplit

import requests
from cryptography.fernet import Fernet, InvalidToken

from reqauth.credentials import OAuth2Config
from reqauth.errors import (
    ConfigurationError,
    MalformedCallbackError,
    ProtocolMismatchError,
    UpstreamError,
)
from reqauth.randomness import RandomSource, default_random

logger = logging.getLogger(__name__)

# Default timeout for HTTP requests
DEFAULT_TIMEOUT = 30

# Lifetime of a sealed flow state, in seconds
DEFAULT_FLOW_STATE_MAX_AGE = 600


@dataclass
class OAuthToken:
    """OAuth 2.0 token response.

    Attributes:
        access_token: The access token string
        token_type: Token type, "Bearer" unless the provider says otherwise
        expires_in: Token lifetime in seconds
        refresh_token: Optional refresh token for obtaining new access tokens
        scope: Space-separated list of granted scopes
        obtained_at: Timestamp when the token was obtained
        raw_response: Full response data from the token endpoint
    """

    access_token: str
    token_type: str = "Bearer"
    expires_in: Optional[int] = None
    refresh_token: Optional[str] = None
    scope: Optional[str] = None
    obtained_at: datetime = field(default_factory=datetime.now)
    raw_response: Dict[str, Any] = field(default_factory=dict)

    def is_expired(self, buffer_seconds: int = 60) -> bool:
        """Check if the token is expired.

        Args:
            buffer_seconds: Consider token expired this many seconds before
                actual expiration to allow for clock skew and request time.

        Returns:
            True if token is expired or will expire within buffer_seconds.
        """
        if self.expires_in is None:
            return False

        elapsed = (datetime.now() - self.obtained_at).total_seconds()
        return elapsed >= (self.expires_in - buffer_seconds)

    @classmethod
    def from_response(cls, response_data: Dict[str, Any]) -> "OAuthToken":
        """Create OAuthToken from a token endpoint response.

        Raises:
            UpstreamError: If the response carries no access token
        """
        access_token = response_data.get("access_token")
        if not access_token:
            raise UpstreamError("invalid_response", "Token endpoint returned no access_token")

        token_type = response_data.get("token_type") or "Bearer"
        if token_type.lower() == "bearer":
            token_type = "Bearer"

        expires_in = response_data.get("expires_in")
        if expires_in is not None:
            try:
                expires_in = int(expires_in)
            except (TypeError, ValueError):
                logger.warning("Ignoring non-numeric expires_in: %r", expires_in)
                expires_in = None

        scope = response_data.get("scope")
        if isinstance(scope, list):
            scope = " ".join(scope)

        return cls(
            access_token=access_token,
            token_type=token_type,
            expires_in=expires_in,
            refresh_token=response_data.get("refresh_token"),
            scope=scope,
            raw_response=response_data,
        )

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for storage."""
        return {
            "access_token": self.access_token,
            "token_type": self.token_type,
            "expires_in": self.expires_in,
            "refresh_token": self.refresh_token,
            "scope": self.scope,
            "obtained_at": self.obtained_at.isoformat(),
        }


@dataclass(frozen=True)
class FlowState:
    """Correlation data for one in-progress authorization code flow.

    Returned by :meth:`OAuth2FlowManager.authorization_url` and required by
    :meth:`OAuth2FlowManager.exchange_code`. Discard it after one exchange.

    Attributes:
        csrf_token: Value sent as ``state`` in the authorization request
        code_verifier: PKCE verifier, None when PKCE is disabled
    """

    csrf_token: str
    code_verifier: Optional[str] = None

    def seal(self, secret: str) -> str:
        """Encrypt this state into an opaque token safe to hand to a browser or store."""
        payload = json.dumps(asdict(self)).encode()
        return _create_fernet(secret).encrypt(payload).decode("ascii")

    @classmethod
    def unseal(
        cls,
        token: str,
        secret: str,
        max_age: Optional[int] = DEFAULT_FLOW_STATE_MAX_AGE,
    ) -> "FlowState":
        """Decrypt a token produced by :meth:`seal`.

        Raises:
            ProtocolMismatchError: If the token was tampered with, sealed with
                another secret, or is older than ``max_age`` seconds.
        """
        try:
            payload = _create_fernet(secret).decrypt(token.encode("ascii"), ttl=max_age)
        except (InvalidToken, UnicodeEncodeError) as exc:
            raise ProtocolMismatchError("Flow state is invalid or expired") from exc
        data = json.loads(payload.decode())
        return cls(csrf_token=data["csrf_token"], code_verifier=data.get("code_verifier"))


def _create_fernet(secret: str) -> Fernet:
    """Create Fernet instance from arbitrary key string."""
    # Derive a 32-byte key using SHA-256, then base64 encode for Fernet
    derived = hashlib.sha256(secret.encode()).digest()
    return Fernet(base64.urlsafe_b64encode(derived))


def code_challenge_s256(verifier: str) -> str:
    """Return the base64url, unpadded SHA-256 challenge for ``verifier``."""
    digest = hashlib.sha256(verifier.encode("ascii")).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def generate_pkce_pair(random_source: Optional[RandomSource] = None) -> Tuple[str, str]:
    """Generate PKCE code verifier and challenge.

    Returns:
        Tuple of (code_verifier, code_challenge)
    """
    # 32 random bytes give a 43 character verifier, the RFC 7636 minimum
    code_verifier = (random_source or default_random).token_urlsafe(32)
    return code_verifier, code_challenge_s256(code_verifier)


def parse_callback_url(callback_url: str) -> Tuple[str, str]:
    """Extract ``code`` and ``state`` from an authorization redirect.

    Args:
        callback_url: Full URL the provider redirected the user agent to

    Returns:
        Tuple of (code, state)

    Raises:
        UpstreamError: If the provider redirected with an error
        MalformedCallbackError: If code or state is missing
    """
    params = parse_qs(urlsplit(callback_url).query)

    if "error" in params:
        raise UpstreamError(
            params["error"][0],
            params.get("error_description", [None])[0],
            params.get("error_uri", [None])[0],
        )

    code = params.get("code", [""])[0]
    if not code:
        raise MalformedCallbackError("Authorization code not found in callback URL")

    state = params.get("state", [""])[0]
    if not state:
        raise MalformedCallbackError("State parameter not found in callback URL")

    return code, state


class OAuth2FlowManager:
    """Runs OAuth 2.0 grants against one provider.

    The manager holds only static configuration, so a new instance may be
    created for each call. Token requests are single POSTs with no retry;
    failures surface as :class:`UpstreamError`.
    """

    def __init__(
        self,
        config: OAuth2Config,
        random_source: Optional[RandomSource] = None,
        timeout: int = DEFAULT_TIMEOUT,
    ):
        self.config = config
        self._random = random_source or default_random
        self._timeout = timeout

    def authorization_url(
        self, extra_params: Optional[Dict[str, str]] = None
    ) -> Tuple[str, FlowState]:
        """Build the authorization URL for user redirect.

        Args:
            extra_params: Additional query parameters (e.g. ``prompt``)

        Returns:
            Tuple of (authorization_url, flow_state)

        Raises:
            ConfigurationError: If no authorization endpoint is configured
        """
        if not self.config.authorization_url:
            raise ConfigurationError("authorization_url is required for authorization code flow")

        csrf_token = self._random.token_urlsafe(32)
        params = {
            "response_type": "code",
            "client_id": self.config.client_id,
            "redirect_uri": self.config.redirect_uri,
            "state": csrf_token,
        }

        if self.config.scope:
            params["scope"] = " ".join(self.config.scopes)

        code_verifier = None
        if self.config.use_pkce:
            code_verifier, code_challenge = generate_pkce_pair(self._random)
            params["code_challenge"] = code_challenge
            params["code_challenge_method"] = "S256"

        if extra_params:
            params.update(extra_params)

        separator = "&" if urlsplit(self.config.authorization_url).query else "?"
        url = f"{self.config.authorization_url}{separator}{urlencode(params)}"
        return url, FlowState(csrf_token=csrf_token, code_verifier=code_verifier)

    def exchange_code(self, code: str, state: str, flow_state: FlowState) -> OAuthToken:
        """Exchange an authorization code for tokens.

        The ``state`` from the callback is checked against ``flow_state``
        before anything is sent to the provider.

        Args:
            code: Authorization code from callback
            state: ``state`` parameter from callback
            flow_state: Value returned with the authorization URL

        Returns:
            OAuthToken with access token and optionally refresh token

        Raises:
            ProtocolMismatchError: If state does not match
            UpstreamError: If the token request fails
        """
        if not hmac.compare_digest(state.encode(), flow_state.csrf_token.encode()):
            logger.warning("OAuth2 callback state mismatch for client %s", self.config.client_id)
            raise ProtocolMismatchError("CSRF token mismatch")

        data = {
            "grant_type": "authorization_code",
            "code": code,
            "redirect_uri": self.config.redirect_uri,
            "client_id": self.config.client_id,
        }

        if flow_state.code_verifier:
            data["code_verifier"] = flow_state.code_verifier

        return self._request_token(data)

    def complete_authorization(self, callback_url: str, flow_state: FlowState) -> OAuthToken:
        """Parse a redirect callback and exchange its code."""
        code, state = parse_callback_url(callback_url)
        return self.exchange_code(code, state, flow_state)

    def client_credentials(self, scopes: Optional[List[str]] = None) -> OAuthToken:
        """Exchange client credentials for an access token.

        Args:
            scopes: Requested scopes; defaults to the configured scope

        Raises:
            ConfigurationError: If no client secret is configured
            UpstreamError: If the token request fails
        """
        self._require_secret("client credentials flow")

        data = {"grant_type": "client_credentials"}
        scopes = scopes if scopes is not None else self.config.scopes
        if scopes:
            data["scope"] = " ".join(scopes)

        return self._request_token(data)

    def refresh(self, refresh_token: str, scopes: Optional[List[str]] = None) -> OAuthToken:
        """Exchange a refresh token for a new access token.

        When the provider does not rotate the refresh token, the one passed
        in is carried over to the result.

        Raises:
            ConfigurationError: If no client secret or refresh token is given
            UpstreamError: If the refresh fails
        """
        self._require_secret("token refresh")
        if not refresh_token:
            raise ConfigurationError("A refresh token is required for token refresh")

        data = {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
        }
        if scopes:
            data["scope"] = " ".join(scopes)

        token = self._request_token(data)
        if not token.refresh_token:
            token.refresh_token = refresh_token
        return token

    def _require_secret(self, purpose: str) -> None:
        if not self.config.client_secret:
            raise ConfigurationError(f"Client secret required for {purpose}")

    def _request_token(self, data: Dict[str, str]) -> OAuthToken:
        """POST to the token endpoint, authenticating with the secret if configured."""
        auth = None
        if self.config.client_secret:
            auth = (self.config.client_id, self.config.client_secret)
        else:
            data.setdefault("client_id", self.config.client_id)

        try:
            response = requests.post(
                self.config.token_url,
                data=data,
                auth=auth,
                headers={"Accept": "application/json"},
                timeout=self._timeout,
            )
        except requests.RequestException as exc:
            logger.error("Token request to %s failed: %s", self.config.token_url, exc)
            raise UpstreamError("request_failed", str(exc)) from exc

        token = self._handle_token_response(response)
        logger.info("Obtained %s token via %s", token.token_type, data["grant_type"])
        return token

    def _handle_token_response(self, response: requests.Response) -> OAuthToken:
        """Handle token endpoint response."""
        try:
            data = response.json()
        except ValueError:
            data = None
        if not isinstance(data, dict):
            raise UpstreamError(
                "invalid_response",
                "Token endpoint returned non-JSON response",
                status_code=response.status_code,
            )

        if response.status_code != 200:
            logger.error(
                "Token endpoint returned %s: %s",
                response.status_code,
                data.get("error", "unknown_error"),
            )
            raise UpstreamError(
                data.get("error", "unknown_error"),
                data.get("error_description"),
                data.get("error_uri"),
                status_code=response.status_code,
            )

        return OAuthToken.from_response(data)
