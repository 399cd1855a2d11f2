"""Loading of named auth profiles from a YAML file.

Example::

    secret_key: change-me
    profiles:
      s3:
        type: aws-signature
        data:
          access_key: AKIA...
          secret_key: ...
          region: us-east-1
          service: s3
"""

from __future__ import annotations

import logging
import os
import warnings
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

import yaml

from reqauth.credentials import OAuth2Config
from reqauth.errors import ConfigurationError
from reqauth.schemes import AuthScheme, AuthType, parse_auth_config, parse_auth_type

logger = logging.getLogger(__name__)

CONFIG_FILE = os.environ.get("REQAUTH_CONFIG", "config/auth.yaml")

_INSECURE_SECRET_KEY = "dev-secret-key"


@dataclass
class Profile:
    """One named auth configuration.

    Attributes:
        name: Profile name from the config file
        auth_type: Scheme tag
        data: Scheme values
    """

    name: str
    auth_type: AuthType
    data: Dict[str, Any] = field(default_factory=dict)

    def credentials(self) -> AuthScheme:
        return parse_auth_config(self.auth_type, self.data)

    def oauth2_config(self) -> OAuth2Config:
        if self.auth_type is not AuthType.OAUTH2:
            raise ConfigurationError(f"Profile {self.name} is not an oauth2 profile")
        return OAuth2Config.from_dict(self.data)


def load_config(file_path: Optional[str] = None) -> Dict[str, Any]:
    """Read the YAML config file.

    A missing file yields an empty config; unreadable YAML is logged and
    also yields an empty config.
    """
    file_path = file_path or CONFIG_FILE
    if not os.path.exists(file_path):
        return {}
    try:
        with open(file_path, "r") as file:
            return yaml.safe_load(file) or {}
    except (OSError, yaml.YAMLError) as exc:
        logger.error("Error loading config file %s: %s", file_path, exc)
        return {}


def load_profiles(file_path: Optional[str] = None) -> Dict[str, Profile]:
    """Return the profiles defined in the config file, keyed by name.

    Raises:
        ConfigurationError: If a profile is not a mapping or has an unknown type
    """
    profiles = {}
    for name, entry in (load_config(file_path).get("profiles") or {}).items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Profile {name} must be a mapping")
        profiles[name] = Profile(
            name=name,
            auth_type=parse_auth_type(entry.get("type")),
            data=dict(entry.get("data") or {}),
        )
    return profiles


def get_profile(name: str, file_path: Optional[str] = None) -> Profile:
    profiles = load_profiles(file_path)
    if name not in profiles:
        raise ConfigurationError(f"Unknown profile: {name}")
    return profiles[name]


def get_secret_key(file_path: Optional[str] = None) -> str:
    """Key used to seal OAuth 2.0 flow state between calls."""
    secret_key = os.environ.get("REQAUTH_SECRET_KEY") or load_config(file_path).get("secret_key")
    if not secret_key:
        warnings.warn(
            "Using insecure default secret key. "
            "Set REQAUTH_SECRET_KEY or secret_key in the config file for production.",
            stacklevel=2,
        )
        secret_key = _INSECURE_SECRET_KEY
    return secret_key
