"""Tests for configuration loading."""

import json
from pathlib import Path

import pytest

from jmap_conformance.config import load_config
from jmap_conformance.errors import ConfigurationError


def write_config(tmp_path: Path, data: object) -> Path:
    path = tmp_path / "config.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return path


def test_loads_minimal_config(tmp_path: Path) -> None:
    """Only the session URL and primary account are required."""
    path = write_config(
        tmp_path,
        {
            "sessionUrl": "https://mail.example.com/.well-known/jmap",
            "accounts": {"primary": {"username": "alice", "password": "s3cret"}},
        },
    )

    config = load_config(path)

    assert config.session_url == "https://mail.example.com/.well-known/jmap"
    assert config.accounts.primary.username == "alice"
    assert config.accounts.primary.password.get_secret_value() == "s3cret"
    assert config.accounts.secondary is None
    assert config.auth_method == "basic"
    assert config.timeout == 30.0
    assert config.no_local_callback is False
    assert config.event_relay_url == "https://smee.io"
    assert config.verbose is False


def test_loads_full_config(tmp_path: Path) -> None:
    """Optional keys use their camelCase names."""
    path = write_config(
        tmp_path,
        {
            "sessionUrl": "https://mail.example.com/.well-known/jmap",
            "authMethod": "bearer",
            "timeout": 10,
            "noLocalCallback": True,
            "eventRelayUrl": "https://relay.example.com",
            "verbose": True,
            "accounts": {
                "primary": {"username": "alice", "password": "token-a"},
                "secondary": {"username": "bob", "password": "token-b"},
            },
        },
    )

    config = load_config(path)

    assert config.auth_method == "bearer"
    assert config.timeout == 10.0
    assert config.no_local_callback is True
    assert config.event_relay_url == "https://relay.example.com"
    assert config.verbose is True
    assert config.accounts.secondary is not None
    assert config.accounts.secondary.username == "bob"


def test_password_is_not_rendered(tmp_path: Path) -> None:
    """Secrets stay out of reprs."""
    path = write_config(
        tmp_path,
        {
            "sessionUrl": "https://mail.example.com/.well-known/jmap",
            "accounts": {"primary": {"username": "alice", "password": "s3cret"}},
        },
    )

    assert "s3cret" not in repr(load_config(path))


def test_missing_file(tmp_path: Path) -> None:
    """A missing file is a configuration error."""
    with pytest.raises(ConfigurationError, match="Cannot read config"):
        load_config(tmp_path / "nope.json")


def test_invalid_json(tmp_path: Path) -> None:
    """A file that is not JSON is a configuration error."""
    path = tmp_path / "config.json"
    path.write_text("{not json", encoding="utf-8")

    with pytest.raises(ConfigurationError, match="Cannot read config"):
        load_config(path)


@pytest.mark.parametrize(
    "data",
    [
        {"accounts": {"primary": {"username": "a", "password": "b"}}},
        {"sessionUrl": "", "accounts": {"primary": {"username": "a", "password": "b"}}},
        {"sessionUrl": "https://x", "accounts": {}},
        {
            "sessionUrl": "https://x",
            "authMethod": "digest",
            "accounts": {"primary": {"username": "a", "password": "b"}},
        },
        [],
    ],
)
def test_invalid_fields(tmp_path: Path, data: object) -> None:
    """Missing or malformed fields are configuration errors."""
    with pytest.raises(ConfigurationError, match="Invalid config"):
        load_config(write_config(tmp_path, data))
