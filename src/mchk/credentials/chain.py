"""Secret provider that falls through a list of providers."""

from pydantic import SecretStr

from mchk.credentials.base import SecretKind, SecretProvider
from mchk.exceptions import CredentialNotFoundError


class ChainSecretProvider(SecretProvider):
    """Try each provider in order; the first one that answers wins."""

    def __init__(self, providers: list[SecretProvider]) -> None:
        if not providers:
            raise ValueError("ChainSecretProvider needs at least one provider")
        self._providers = providers

    def get_secret(self, kind: SecretKind, login: str) -> SecretStr:
        last_error: CredentialNotFoundError | None = None
        for provider in self._providers:
            try:
                return provider.get_secret(kind, login)
            except CredentialNotFoundError as e:
                last_error = e
        assert last_error is not None
        raise last_error
