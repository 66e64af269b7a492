"""Default values shared across mchk modules."""

from pathlib import Path

APP_NAME = "mchk"

DEFAULT_SMTP_PORT = 25
DEFAULT_IMAP_PORT = 993
DEFAULT_FOLDER = "INBOX"

# Seconds between progress ticks while waiting for mail transit
WAIT_TICK_SECONDS = 0.1


def default_config_path() -> Path:
    """Location where an example config is written when none is found."""
    return Path.home() / ".config" / APP_NAME / f"{APP_NAME}.yml"


EXAMPLE_CONFIG = """\
---
continue_on_errors: no
tests:
  - name: test example
    should_send: yes
    smtp_server: smtp.example.com
    smtp_port: 25
    send_from: user@example.com
    send_to: user@example.com
    sender_login: user@example.com
    sender_password: password
    wait_for: 2
    should_receive: yes
    imap_server: imap.example.com
    imap_port: 993
    imap_login: user@example.com
    imap_password: password
    leave_message: no
"""
