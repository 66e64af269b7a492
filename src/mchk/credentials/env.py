"""Environment variable secret provider."""

import logging
import os
import re

from pydantic import SecretStr

from mchk.credentials.base import SecretKind, SecretProvider
from mchk.exceptions import CredentialNotFoundError

logger = logging.getLogger(__name__)


def normalize_login(login: str) -> str:
    """Normalize a login for use in environment variable names.

    For example:
    - "probe" -> "PROBE"
    - "user@example.com" -> "USER_EXAMPLE_COM"
    """
    return re.sub(r"[^a-zA-Z0-9]", "_", login).upper()


def env_key(kind: SecretKind, login: str) -> str:
    """Name of the variable holding the password, e.g. MCHK_SMTP_USER_EXAMPLE_COM_PASSWORD."""
    return f"MCHK_{kind.upper()}_{normalize_login(login)}_PASSWORD"


class EnvSecretProvider(SecretProvider):
    """Secret provider reading MCHK_{KIND}_{LOGIN}_PASSWORD variables."""

    def get_secret(self, kind: SecretKind, login: str) -> SecretStr:
        key = env_key(kind, login)
        logger.debug("Looking up password (env_key=%s)", key)

        value = os.environ.get(key)
        if not value:
            raise CredentialNotFoundError(kind, login, f"environment variable {key} is not set")

        return SecretStr(value)
