"""Secure random material for nonces and PKCE verifiers."""

from __future__ import annotations

import base64
import secrets
import string

ALPHANUMERIC = string.ascii_letters + string.digits


class RandomSource:
    """Source of cryptographically strong random values.

    Backed by :mod:`secrets`, which reads from the OS generator and is safe
    to share between threads. Signers take an instance as a constructor
    argument so tests can substitute a deterministic subclass.
    """

    def token_bytes(self, nbytes: int = 32) -> bytes:
        return secrets.token_bytes(nbytes)

    def alphanumeric(self, length: int = 32) -> str:
        """Return ``length`` characters drawn from ``[A-Za-z0-9]``."""
        return "".join(secrets.choice(ALPHANUMERIC) for _ in range(length))

    def token_urlsafe(self, nbytes: int = 32) -> str:
        """Return ``token_bytes(nbytes)`` as unpadded base64url."""
        return base64.urlsafe_b64encode(self.token_bytes(nbytes)).rstrip(b"=").decode("ascii")


default_random = RandomSource()
