"""Custom exceptions for mchk."""

from pathlib import Path


class MchkError(Exception):
    """Base exception for mchk."""


class ConfigError(MchkError):
    """Raised when the configuration cannot be used to start a run."""

    def __init__(
        self,
        message: str,
        file_path: str | None = None,
        line: int | None = None,
        col: int | None = None,
    ) -> None:
        self.file_path = file_path
        self.line = line
        self.col = col
        full_message = message
        if file_path:
            location = f" in {file_path}"
            if line is not None:
                location += f" at line {line}"
                if col is not None:
                    location += f", column {col}"
            full_message = f"Configuration error{location}: {message}"
        super().__init__(full_message)


class ConfigNotFoundError(ConfigError):
    """Raised when no configuration file exists at any searched location."""

    def __init__(self, searched: list[Path]) -> None:
        self.searched = searched
        paths = ", ".join(str(p) for p in searched)
        super().__init__(f"No config file found (searched: {paths})")


class CredentialNotFoundError(ConfigError):
    """Raised when a secret cannot be supplied for a login."""

    def __init__(self, kind: str, login: str, detail: str | None = None) -> None:
        self.kind = kind
        self.login = login
        message = f"Missing {kind.upper()} password for '{login}'"
        if detail:
            message = f"{message}: {detail}"
        super().__init__(message)


class InvalidTestSpecError(ConfigError):
    """Raised when a test is missing required fields."""

    def __init__(self, test_name: str, missing: list[str]) -> None:
        self.test_name = test_name
        self.missing = missing
        lines = [f"Test '{test_name}': {field} is not specified" for field in missing]
        super().__init__("\n".join(lines))


class TokenGenerationError(MchkError):
    """Raised when no secure randomness is available for a probe token."""


class SubmissionError(MchkError):
    """Raised when the outbound relay refuses or cannot take the probe."""

    def __init__(self, host: str, port: int, cause: BaseException) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"Sending through {host}:{port} failed: {cause}")


class VerificationError(MchkError):
    """Raised when the inbound mailbox cannot be searched."""

    action = "Checking mailbox on"

    def __init__(self, host: str, port: int, cause: BaseException) -> None:
        self.host = host
        self.port = port
        self.cause = cause
        super().__init__(f"{self.action} {host}:{port} failed: {cause}")


class MailboxConnectionError(VerificationError):
    """Raised when connecting or logging in to the mailbox fails."""

    action = "Connecting to IMAP server"
