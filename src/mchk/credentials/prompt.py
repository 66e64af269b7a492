"""Interactive terminal secret provider."""

import getpass
from collections.abc import Callable

from pydantic import SecretStr

from mchk.credentials.base import SecretKind, SecretProvider
from mchk.exceptions import CredentialNotFoundError


class PromptSecretProvider(SecretProvider):
    """Ask for the password on the controlling terminal without echo."""

    def __init__(self, prompt: Callable[[str], str] = getpass.getpass) -> None:
        self._prompt = prompt

    def get_secret(self, kind: SecretKind, login: str) -> SecretStr:
        try:
            value = self._prompt(f"Enter {kind.upper()} password for {login}: ")
        except (EOFError, OSError) as e:
            raise CredentialNotFoundError(kind, login, "no terminal to prompt on") from e

        if not value:
            raise CredentialNotFoundError(kind, login, "empty password")
        return SecretStr(value)
