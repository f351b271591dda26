"""Configuration for a conformance run."""

import json
from pathlib import Path
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError

from jmap_conformance.errors import ConfigurationError


class AccountConfig(BaseModel):
    """Credentials for one account on the server under test."""

    username: str
    password: SecretStr


class AccountsConfig(BaseModel):
    """Primary account under test and an optional second principal."""

    primary: AccountConfig
    secondary: AccountConfig | None = None


class HarnessConfig(BaseModel):
    """Configuration for the harness, loaded from a JSON file."""

    model_config = ConfigDict(populate_by_name=True)

    session_url: str = Field(alias="sessionUrl", min_length=1)
    accounts: AccountsConfig
    auth_method: Literal["basic", "bearer"] = Field(
        default="basic", alias="authMethod"
    )
    # Seconds, applied to every request made to the server under test
    timeout: float = 30.0
    no_local_callback: bool = Field(default=False, alias="noLocalCallback")
    event_relay_url: str = Field(default="https://smee.io", alias="eventRelayUrl")
    verbose: bool = False


def load_config(path: Path) -> HarnessConfig:
    """Load and validate a configuration file.

    Raises:
        ConfigurationError: If the file cannot be read, is not JSON, or does
            not describe a valid configuration.

    """
    try:
        raw = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Cannot read config {path}: {exc}") from exc

    try:
        return HarnessConfig.model_validate(raw)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid config {path}: {exc}") from exc
