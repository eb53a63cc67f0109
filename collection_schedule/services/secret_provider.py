"""
This module provides credentials to the email transport.

Secrets are read from one file per name in a secrets directory. Any secret whose
file is missing or empty falls back to an environment variable, so local runs can
export GMAIL_CLIENT_ID and friends instead.
"""
import logging
import os
from typing import Dict, Optional, Protocol, Sequence

from ..config import SECRETS_DIR

logger = logging.getLogger(__name__)

GMAIL_SECRET_NAMES = (
    "gmail-client-id",
    "gmail-client-secret",
    "gmail-refresh-token",
    "gmail-sender",
)


class SecretProvider(Protocol):
    """Anything that can look up named credentials."""

    def fetch(self, names: Sequence[str]) -> Dict[str, Optional[str]]:
        ...


def env_name(secret_name: str) -> str:
    """Maps 'gmail-client-id' to 'GMAIL_CLIENT_ID'."""
    return secret_name.upper().replace("-", "_")


class SecretsFileProvider:
    """Reads secrets from files, falling back to environment variables."""

    def __init__(self, directory: str = SECRETS_DIR, environ: Optional[Dict[str, str]] = None):
        self.directory = directory
        self.environ = os.environ if environ is None else environ

    def _read_file(self, name: str) -> Optional[str]:
        path = os.path.join(self.directory, name)
        try:
            with open(path, encoding="utf-8") as f:
                return f.read().strip() or None
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning(f"Could not read secret file {path}: {e}")
            return None

    def fetch(self, names: Sequence[str]) -> Dict[str, Optional[str]]:
        """
        Looks up each secret name.

        Returns:
            A mapping of every requested name to its value, or None if unset.
        """
        if not os.path.isdir(self.directory):
            logger.info(f"Secrets directory '{self.directory}' not found; using environment variables.")
        values: Dict[str, Optional[str]] = {}
        for name in names:
            value = self._read_file(name) if os.path.isdir(self.directory) else None
            if value is None:
                value = self.environ.get(env_name(name)) or None
            values[name] = value
        return values
