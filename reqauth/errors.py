"""Exception hierarchy for request authentication failures.

Every failure is scoped to a single signing or token-exchange call and
is raised to the caller; nothing here is retried or recovered locally.
"""

from __future__ import annotations

from typing import Optional


class ReqAuthError(Exception):
    """Base exception for all reqauth errors."""

    pass


class ConfigurationError(ReqAuthError):
    """Credential configuration is unusable (unsupported method, missing secret)."""

    pass


class EncodingError(ReqAuthError):
    """A value cannot be represented in an HTTP header."""

    pass


class ProtocolMismatchError(ReqAuthError):
    """The OAuth 2.0 callback does not belong to the flow that was started."""

    pass


class MalformedCallbackError(ReqAuthError):
    """The redirect callback URL lacks ``code`` or ``state``."""

    pass


class UpstreamError(ReqAuthError):
    """Transport failure or error response from an authorization server.

    Attributes:
        error: OAuth 2.0 error code (e.g. "invalid_grant") or "request_failed"
        error_description: Human readable description, if provided
        error_uri: Link to error documentation, if provided
        status_code: HTTP status of the token endpoint response, if any
    """

    def __init__(
        self,
        error: str,
        error_description: Optional[str] = None,
        error_uri: Optional[str] = None,
        status_code: Optional[int] = None,
    ):
        self.error = error
        self.error_description = error_description
        self.error_uri = error_uri
        self.status_code = status_code
        message = error
        if error_description:
            message = f"{error}: {error_description}"
        super().__init__(message)
