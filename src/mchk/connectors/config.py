"""Connector configuration models."""

from pydantic import BaseModel, ConfigDict, Field, SecretStr

from mchk.defaults import DEFAULT_IMAP_PORT, DEFAULT_SMTP_PORT


class SMTPConfig(BaseModel):
    """Outbound relay endpoint and probe addressing."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(default=DEFAULT_SMTP_PORT, ge=1, le=65535)
    sender: str
    recipient: str
    username: str
    password: SecretStr
    ssl: bool = False  # False = plain connection with opportunistic STARTTLS


class IMAPConfig(BaseModel):
    """Inbound mailbox endpoint."""

    model_config = ConfigDict(frozen=True)

    host: str
    port: int = Field(default=DEFAULT_IMAP_PORT, ge=1, le=65535)
    username: str
    password: SecretStr
