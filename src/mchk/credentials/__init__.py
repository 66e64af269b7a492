"""Secret providers for SMTP and IMAP logins."""

from mchk.credentials.base import SecretProvider
from mchk.credentials.chain import ChainSecretProvider
from mchk.credentials.env import EnvSecretProvider
from mchk.credentials.prompt import PromptSecretProvider

__all__ = [
    "ChainSecretProvider",
    "EnvSecretProvider",
    "PromptSecretProvider",
    "SecretProvider",
]
