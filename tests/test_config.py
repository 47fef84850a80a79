"""Tests for configuration loading and validation."""

import json

import pytest

from core.config import BrokerSettings, Config, ProxySettings, load_config, validate_for_serving
from core.exceptions import ConfigurationError


def test_missing_file_writes_default(tmp_path):
    config_file = tmp_path / "broker-proxy" / "config.json"

    config = load_config(config_file)

    assert config == Config()
    assert json.loads(config_file.read_text())["proxy"]["port"] == 8080


def test_loads_values_from_file(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(
        json.dumps(
            {
                "broker": {"url": "https://broker.example.com/"},
                "token": {"kind": "file", "path": "/var/run/token"},
            }
        )
    )

    config = load_config(config_file)

    assert config.broker.url == "https://broker.example.com"
    assert config.token.kind == "file"


def test_corrupted_file_is_backed_up(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text("{not json")

    config = load_config(config_file)

    assert config == Config()
    assert (tmp_path / "config.json.bak").read_text() == "{not json"


def test_invalid_broker_url_is_a_configuration_error(tmp_path):
    config_file = tmp_path / "config.json"
    config_file.write_text(json.dumps({"broker": {"url": "broker.example.com"}}))

    with pytest.raises(ConfigurationError, match="absolute http"):
        load_config(config_file)


def test_serving_requires_broker_url():
    with pytest.raises(ConfigurationError, match="broker.url"):
        validate_for_serving(Config())


def test_serving_requires_complete_basic_auth():
    config = Config(
        broker=BrokerSettings(url="http://broker"),
        proxy=ProxySettings(username="admin"),
    )

    with pytest.raises(ConfigurationError, match="username and proxy.password"):
        validate_for_serving(config)


def test_basic_auth_enabled_only_with_both_values():
    assert not ProxySettings(username="admin").basic_auth_enabled
    assert ProxySettings(username="admin", password="pw").basic_auth_enabled
