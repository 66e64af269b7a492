"""Data models for mchk."""

from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationInfo, field_validator

from mchk.connectors.config import IMAPConfig, SMTPConfig
from mchk.defaults import DEFAULT_IMAP_PORT, DEFAULT_SMTP_PORT

# Fields that must be non-empty before a test may run
REQUIRED_FIELDS: tuple[str, ...] = (
    "smtp_server",
    "send_from",
    "send_to",
    "sender_login",
    "imap_server",
)


class TestSpec(BaseModel):
    """One configured probe route, as read from the config file.

    Attributes:
        name: Label used in reports only; need not be unique.
        should_send: Whether the relay is expected to accept the probe.
        should_receive: Whether the probe is expected to reach the mailbox.
        wait_for: Seconds to wait between sending and searching.
        leave_message: Keep the found probe instead of deleting it.
    """

    __test__: ClassVar[bool] = False

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str = ""
    should_send: bool = False
    smtp_server: str = ""
    smtp_port: int = Field(default=DEFAULT_SMTP_PORT, ge=1, le=65535)
    smtp_ssl: bool = False
    send_from: str = ""
    send_to: str = ""
    sender_login: str = ""
    sender_password: SecretStr | None = None
    wait_for: int = Field(default=0, ge=0)
    should_receive: bool = False
    imap_server: str = ""
    imap_port: int = Field(default=DEFAULT_IMAP_PORT, ge=1, le=65535)
    imap_login: str = ""
    imap_password: SecretStr | None = None
    leave_message: bool = False

    @field_validator("smtp_port", "imap_port", mode="before")
    @classmethod
    def _default_blank_port(cls, v: Any, info: ValidationInfo) -> Any:
        if v is None or v == "":
            return DEFAULT_SMTP_PORT if info.field_name == "smtp_port" else DEFAULT_IMAP_PORT
        return v

    @field_validator("sender_password", "imap_password", mode="before")
    @classmethod
    def _blank_secret_is_absent(cls, v: Any) -> Any:
        if v is None or v == "":
            return None
        # YAML reads unquoted digits as numbers
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator(
        "name", "smtp_server", "send_from", "send_to", "sender_login", "imap_server", "imap_login",
        mode="before",
    )
    @classmethod
    def _none_to_empty(cls, v: Any) -> Any:
        return "" if v is None else v

    def missing_fields(self) -> list[str]:
        """Return every required field that is empty, in declaration order."""
        return [field for field in REQUIRED_FIELDS if not getattr(self, field).strip()]

    def with_secrets(
        self,
        sender_password: SecretStr | None = None,
        imap_password: SecretStr | None = None,
    ) -> "TestSpec":
        """Return a copy with the given secrets filled in where absent."""
        update: dict[str, SecretStr] = {}
        if self.sender_password is None and sender_password is not None:
            update["sender_password"] = sender_password
        if self.imap_password is None and imap_password is not None:
            update["imap_password"] = imap_password
        return self.model_copy(update=update) if update else self

    @property
    def outbound(self) -> SMTPConfig:
        """Relay endpoint view; the sender secret must already be resolved."""
        if self.sender_password is None:
            raise RuntimeError(f"SMTP password for test '{self.name}' has not been resolved")
        return SMTPConfig(
            host=self.smtp_server,
            port=self.smtp_port,
            sender=self.send_from,
            recipient=self.send_to,
            username=self.sender_login,
            password=self.sender_password,
            ssl=self.smtp_ssl,
        )

    @property
    def inbound(self) -> IMAPConfig:
        """Mailbox endpoint view; the IMAP secret must already be resolved."""
        if self.imap_password is None:
            raise RuntimeError(f"IMAP password for test '{self.name}' has not been resolved")
        return IMAPConfig(
            host=self.imap_server,
            port=self.imap_port,
            username=self.imap_login,
            password=self.imap_password,
        )


class RunConfig(BaseModel):
    """Ordered tests plus the run-level failure policy."""

    tests: list[TestSpec] = []
    continue_on_errors: bool = False


class ReceiveStatus(str, Enum):
    """What the mailbox search turned up for a probe token."""

    FOUND = "found"
    NOT_FOUND = "not_found"
    AMBIGUOUS = "ambiguous"


class TestState(str, Enum):
    """Steps a single test moves through."""

    __test__ = False

    VALIDATING = "validating"
    SENDING = "sending"
    WAITING = "waiting"
    VERIFYING = "verifying"
    CLASSIFYING = "classifying"
    DONE = "done"


class TestOutcome(BaseModel):
    """Result of one test run.

    ``received`` is None when verification was not attempted.
    """

    __test__: ClassVar[bool] = False

    name: str
    sent: bool = False
    send_error: str | None = None
    received: ReceiveStatus | None = None
    receive_error: str | None = None
    matched_expectation: bool = False
    soft_mismatch: bool = False


class RunResult(BaseModel):
    """Outcomes of a run in execution order."""

    outcomes: list[TestOutcome] = []
    aborted: bool = False
    skipped: int = 0

    @property
    def passed(self) -> int:
        return sum(1 for o in self.outcomes if o.matched_expectation)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if not o.matched_expectation)


class VerificationResult(BaseModel):
    """What one mailbox check found and whether it cleaned up."""

    status: ReceiveStatus
    matches: int = 0
    deleted: bool = False
