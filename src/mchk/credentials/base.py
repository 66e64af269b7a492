"""Abstract base class for secret providers."""

from abc import ABC, abstractmethod
from typing import Literal

from pydantic import SecretStr

SecretKind = Literal["smtp", "imap"]


class SecretProvider(ABC):
    """Abstract interface for supplying passwords missing from the config file.

    Implementations can read environment variables, prompt on a terminal,
    query a secret store, etc.
    """

    @abstractmethod
    def get_secret(self, kind: SecretKind, login: str) -> SecretStr:
        """Retrieve the password for ``login`` on the given protocol side.

        Args:
            kind: "smtp" for the relay login, "imap" for the mailbox login.
            login: The login name the password belongs to.

        Returns:
            The password as a SecretStr.

        Raises:
            CredentialNotFoundError: If the secret cannot be supplied.
        """
        ...
