"""Credential dataclasses consumed by the signers and OAuth 2.0 flows.

Each class maps one auth configuration as stored by the calling
application. ``from_dict`` accepts the flat string maps that application
persists and fails fast with :class:`ConfigurationError` when a required
field is absent.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List, Optional

from reqauth.errors import ConfigurationError


def _require(data: Dict[str, Any], kind: str, names: Iterable[str]) -> None:
    missing = [name for name in names if not data.get(name)]
    if missing:
        raise ConfigurationError(f"{kind} configuration is missing: {', '.join(missing)}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("1", "true", "yes", "on")
    return bool(value)


@dataclass(frozen=True)
class NoAuth:
    """Marker for requests sent without authentication."""


@dataclass(frozen=True)
class BasicCredentials:
    username: str
    password: str = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BasicCredentials":
        _require(data, "basic", ["username"])
        return cls(username=data["username"], password=data.get("password", ""))


@dataclass(frozen=True)
class BearerCredentials:
    token: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BearerCredentials":
        token = data.get("token") or data.get("access_token")
        if not token:
            raise ConfigurationError("bearer configuration is missing: token")
        return cls(token=token)


@dataclass(frozen=True)
class ApiKeyCredentials:
    """API key sent as a header or query parameter.

    Attributes:
        key: Header or query parameter name
        value: The API key
        location: "header" or "query"
    """

    key: str
    value: str
    location: str = "header"

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ApiKeyCredentials":
        _require(data, "api-key", ["key", "value"])
        location = data.get("in") or data.get("location") or "header"
        if location not in ("header", "query"):
            raise ConfigurationError(f"Unsupported API key location: {location}")
        return cls(key=data["key"], value=data["value"], location=location)


@dataclass(frozen=True)
class DigestCredentials:
    """HTTP Digest state for answering one server challenge.

    Attributes:
        username: Account name
        password: Shared secret
        realm: Realm from the server challenge
        nonce: Server nonce from the challenge
        uri: Request-URI exactly as it appears on the request line
        method: HTTP method of the request
        qop: Quality of protection ("auth" or "auth-int"), None for RFC 2069 mode
        nc: Nonce count; "00000001" when not supplied
        cnonce: Client nonce; generated when not supplied
        opaque: Opaque value echoed back to the server
        algorithm: "MD5" (default), "MD5-sess", "SHA-256" or "SHA-256-sess"
    """

    username: str
    password: str
    realm: str
    nonce: str
    uri: str
    method: str = "GET"
    qop: Optional[str] = None
    nc: Optional[str] = None
    cnonce: Optional[str] = None
    opaque: Optional[str] = None
    algorithm: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DigestCredentials":
        _require(data, "digest", ["username", "realm", "nonce", "uri"])
        return cls(
            username=data["username"],
            password=data.get("password", ""),
            realm=data["realm"],
            nonce=data["nonce"],
            uri=data["uri"],
            method=data.get("method") or "GET",
            qop=data.get("qop") or None,
            nc=data.get("nc") or None,
            cnonce=data.get("cnonce") or None,
            opaque=data.get("opaque") or None,
            algorithm=data.get("algorithm") or None,
        )

    @classmethod
    def from_challenge(
        cls,
        username: str,
        password: str,
        challenge: Dict[str, str],
        method: str,
        uri: str,
    ) -> "DigestCredentials":
        """Build credentials answering a parsed ``WWW-Authenticate`` challenge.

        When the server offers several qop values, "auth" is preferred.
        """
        qop = None
        offered = [q.strip() for q in challenge.get("qop", "").split(",") if q.strip()]
        if offered:
            qop = "auth" if "auth" in offered else offered[0]
        if "nonce" not in challenge:
            raise ConfigurationError("Digest challenge has no nonce")
        return cls(
            username=username,
            password=password,
            realm=challenge.get("realm", ""),
            nonce=challenge["nonce"],
            uri=uri,
            method=method,
            qop=qop,
            opaque=challenge.get("opaque"),
            algorithm=challenge.get("algorithm"),
        )


@dataclass(frozen=True)
class OAuth1Credentials:
    """Consumer and token credentials for OAuth 1.0a request signing.

    Attributes:
        consumer_key: Client identifier
        consumer_secret: Client shared secret
        token: Token identifier, if a token has been issued
        token_secret: Token shared secret
        signature_method: "HMAC-SHA1" or "HMAC-SHA256"
        version: Value of ``oauth_version``
        realm: Optional realm emitted first in the header
        callback: ``oauth_callback`` for temporary credential requests
        verifier: ``oauth_verifier`` for token credential requests
    """

    consumer_key: str
    consumer_secret: str
    token: Optional[str] = None
    token_secret: Optional[str] = None
    signature_method: str = "HMAC-SHA1"
    version: str = "1.0"
    realm: Optional[str] = None
    callback: Optional[str] = None
    verifier: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuth1Credentials":
        _require(data, "oauth1", ["consumer_key", "consumer_secret"])
        return cls(
            consumer_key=data["consumer_key"],
            consumer_secret=data["consumer_secret"],
            token=data.get("token") or None,
            token_secret=data.get("token_secret") or None,
            signature_method=data.get("signature_method") or "HMAC-SHA1",
            version=data.get("version") or "1.0",
            realm=data.get("realm") or None,
            callback=data.get("callback") or None,
            verifier=data.get("verifier") or None,
        )


@dataclass(frozen=True)
class AwsCredentials:
    """AWS access key pair and signing scope.

    Attributes:
        access_key: Access key ID
        secret_key: Secret access key
        region: Region name, e.g. "us-east-1"
        service: Service signing name, e.g. "s3" or "execute-api"
        session_token: Temporary session token, if any
    """

    access_key: str
    secret_key: str
    region: str
    service: str
    session_token: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AwsCredentials":
        _require(data, "aws-signature", ["access_key", "secret_key", "region", "service"])
        return cls(
            access_key=data["access_key"],
            secret_key=data["secret_key"],
            region=data["region"],
            service=data["service"],
            session_token=data.get("session_token") or None,
        )

    def __repr__(self) -> str:
        return (
            f"AwsCredentials(access_key={self.access_key!r}, region={self.region!r}, "
            f"service={self.service!r})"
        )


@dataclass(frozen=True)
class OAuth2Config:
    """Static client registration for one OAuth 2.0 provider.

    Attributes:
        client_id: Client identifier
        authorization_url: Authorization endpoint
        token_url: Token endpoint
        redirect_uri: Registered redirect URI
        client_secret: Client secret; required for client credentials and refresh
        scope: Space-separated scopes to request
        use_pkce: Send a PKCE S256 challenge in the authorization code flow
    """

    client_id: str
    authorization_url: str
    token_url: str
    redirect_uri: str = ""
    client_secret: Optional[str] = None
    scope: Optional[str] = None
    use_pkce: bool = True

    @property
    def scopes(self) -> List[str]:
        return self.scope.split() if self.scope else []

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OAuth2Config":
        _require(data, "oauth2", ["client_id", "token_url"])
        return cls(
            client_id=data["client_id"],
            authorization_url=data.get("authorization_url", ""),
            token_url=data["token_url"],
            redirect_uri=data.get("redirect_uri", ""),
            client_secret=data.get("client_secret") or None,
            scope=data.get("scope") or None,
            use_pkce=_as_bool(data.get("use_pkce", True)),
        )
