"""Configuration settings for mchk using pydantic-settings."""

import os
from pathlib import Path
from typing import Any

import yaml
from pydantic_core import ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from mchk.defaults import APP_NAME, EXAMPLE_CONFIG, default_config_path
from mchk.exceptions import ConfigError, ConfigNotFoundError
from mchk.models import RunConfig, TestSpec


def config_search_paths() -> list[Path]:
    """Candidate config locations, most specific first.

    1. MCHK_CONFIG_FILE environment variable
    2. ~/.config/mchk/mchk.yml
    3. ~/.mchk.yml
    4. ./mchk.yml (current directory)
    """
    paths = []
    env_path = os.environ.get("MCHK_CONFIG_FILE")
    if env_path:
        paths.append(Path(env_path).expanduser())
    paths.extend(
        [
            default_config_path(),
            Path.home() / f".{APP_NAME}.yml",
            Path.cwd() / f"{APP_NAME}.yml",
        ]
    )
    return paths


def find_config_file(explicit: str | Path | None = None) -> Path:
    """Locate the config file to load.

    An explicit path is the only candidate when given.

    Raises:
        ConfigNotFoundError: If none of the candidates exists.
    """
    candidates = [Path(explicit).expanduser()] if explicit else config_search_paths()
    for path in candidates:
        if path.is_file():
            return path
    raise ConfigNotFoundError(candidates)


def read_config_file(path: Path) -> dict[str, Any]:
    """Read YAML config from file with improved error messages."""
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except yaml.YAMLError as e:
        # Parse YAML error location if available
        mark = getattr(e, "problem_mark", None)
        line_num = mark.line + 1 if mark else None
        col_num = mark.column + 1 if mark else None
        error_msg = getattr(e, "problem", None) or str(e)
        raise ConfigError(
            f"Invalid YAML syntax: {error_msg}",
            file_path=str(path),
            line=line_num,
            col=col_num,
        ) from e
    except PermissionError as e:
        raise ConfigError("Cannot read config file, permission denied", file_path=str(path)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read config file: {e}", file_path=str(path)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError("Top level of the config file must be a mapping", file_path=str(path))
    return data


def _parse_validation_error(error: ValidationError) -> str:
    """Convert Pydantic ValidationError to a user-friendly message listing every problem."""
    messages = []
    for err in error.errors():
        loc = err.get("loc", ())
        msg = err.get("msg", "")
        field_name = ".".join(str(part) for part in loc)
        if err.get("type") == "extra_forbidden":
            messages.append(f"Unknown field '{field_name}'")
        elif field_name:
            messages.append(f"Invalid value for '{field_name}': {msg}")
        else:
            messages.append(msg)
    return "; ".join(messages) if messages else "Unknown validation error"


class Settings(BaseSettings):
    """Application settings from the YAML file, overridable with MCHK_ variables.

    Example file:
        continue_on_errors: no
        tests:
          - name: "relay to mailbox"
            should_send: yes
            smtp_server: "smtp.example.com"
            send_from: "probe@example.com"
            send_to: "probe@example.com"
            sender_login: "probe@example.com"
            should_receive: yes
            imap_server: "imap.example.com"
            imap_login: "probe@example.com"

    Passwords left out of the file are requested from a secret provider
    (e.g. MCHK_SMTP_PROBE_EXAMPLE_COM_PASSWORD, or an interactive prompt).
    """

    model_config = SettingsConfigDict(env_prefix="MCHK_", extra="ignore")

    debug: bool = False
    continue_on_errors: bool = False
    tests: list[TestSpec] = []

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Let environment variables override values read from the config file."""
        return (
            env_settings,
            init_settings,
            dotenv_settings,
            file_secret_settings,
        )

    def run_config(self) -> RunConfig:
        """The ordered tests and failure policy the orchestrator runs."""
        return RunConfig(tests=self.tests, continue_on_errors=self.continue_on_errors)


def load_settings(path: Path) -> Settings:
    """Load and validate settings from ``path``.

    Raises:
        ConfigError: If the file cannot be read or does not validate.
    """
    data = read_config_file(path)
    try:
        return Settings(**data)
    except ValidationError as e:
        raise ConfigError(_parse_validation_error(e), file_path=str(path)) from e


def write_example_config(path: Path | None = None) -> Path:
    """Write the example config to ``path`` (default location when omitted).

    Existing files are left untouched.
    """
    target = path or default_config_path()
    if target.exists():
        return target
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(EXAMPLE_CONFIG)
    return target
