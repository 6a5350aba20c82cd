"""Unit tests for connection configuration and settings."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from obs_listener.config import (
    ConnectionConfig,
    MappingConfigSource,
    Settings,
    YamlConfigSource,
    load_settings,
    validate_connection_config,
)
from obs_listener.errors import ConfigValidationError
from obs_listener.storage import DEFAULT_STORAGE_DIR


class TestValidation:
    """Test address/port validation messages."""

    def test_valid(self):
        assert validate_connection_config("localhost", "4455") == []

    def test_missing_address(self):
        assert validate_connection_config("", "4455") == ["Address is required"]

    def test_blank_address(self):
        assert validate_connection_config("   ", "4455") == ["Address is required"]

    def test_missing_port(self):
        assert validate_connection_config("localhost", "") == ["Port is required"]

    def test_both_missing(self):
        assert validate_connection_config(None, None) == [
            "Address is required",
            "Port is required",
        ]

    @pytest.mark.parametrize("port", ["0", "65536", "-1", "abc", "44.5"])
    def test_invalid_port(self, port):
        assert validate_connection_config("localhost", port) == [
            "Port must be a valid number between 1 and 65535"
        ]

    @pytest.mark.parametrize("port", ["1", "65535", " 4455 "])
    def test_port_bounds(self, port):
        assert validate_connection_config("localhost", port) == []

    def test_empty_address_and_bad_port(self):
        assert validate_connection_config("", "abc") == [
            "Address is required",
            "Port must be a valid number between 1 and 65535",
        ]


class TestConnectionConfig:
    """Test the config model."""

    def test_defaults(self):
        config = ConnectionConfig()

        assert config.address == "localhost"
        assert config.port == "4455"
        assert config.password == ""
        assert config.url == "ws://localhost:4455"

    def test_url_strips_whitespace(self):
        assert ConnectionConfig(address=" 10.0.0.5 ", port="4456").url == "ws://10.0.0.5:4456"

    def test_ensure_valid_raises(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            ConnectionConfig(address="", port="99999").ensure_valid()

        assert exc_info.value.errors == [
            "Address is required",
            "Port must be a valid number between 1 and 65535",
        ]

    def test_ensure_valid_passes(self):
        ConnectionConfig().ensure_valid()


class TestMappingSource:
    """Test mapping-backed configuration."""

    def test_read_missing(self):
        assert MappingConfigSource().read("address") is None

    def test_values_become_strings(self):
        source = MappingConfigSource({"port": 4455, "auto_connect": False})

        assert source.read("port") == "4455"
        assert source.read("auto_connect") == "false"


class TestYamlSource:
    """Test YAML configuration files."""

    def test_flat_file(self, tmp_path):
        path = tmp_path / "obs.yaml"
        path.write_text("address: 192.168.1.20\nport: 4456\n")

        source = YamlConfigSource(path)

        assert source.read("address") == "192.168.1.20"
        assert source.read("port") == "4456"

    def test_nested_under_obs(self, tmp_path):
        path = tmp_path / "obs.yaml"
        path.write_text("obs:\n  password: secret\n  auto_connect: false\n")

        source = YamlConfigSource(path)

        assert source.read("password") == "secret"
        assert source.read("auto_connect") == "false"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "obs.yaml"
        path.write_text("")

        assert YamlConfigSource(path).read("address") is None

    def test_non_mapping_rejected(self, tmp_path):
        path = tmp_path / "obs.yaml"
        path.write_text("- just\n- a list\n")

        with pytest.raises(ValueError):
            YamlConfigSource(path)


class TestLoadSettings:
    """Test resolving Settings from a source."""

    def test_defaults_without_source(self):
        settings = load_settings()

        assert settings == Settings()
        assert settings.auto_connect is True
        assert settings.storage_dir == DEFAULT_STORAGE_DIR

    def test_defaults_from_empty_source(self):
        settings = load_settings(MappingConfigSource())

        assert settings.connection == ConnectionConfig()
        assert settings.auto_connect is True
        assert settings.settle_delay == 1.0

    def test_reads_connection(self):
        settings = load_settings(
            MappingConfigSource({"address": "obs.local", "port": "4460", "password": "pw"})
        )

        assert settings.connection.url == "ws://obs.local:4460"
        assert settings.connection.password == "pw"

    @pytest.mark.parametrize(
        "raw,expected",
        [("false", False), ("FALSE", False), (" false ", False), ("true", True), ("no", True)],
    )
    def test_auto_connect_only_disabled_by_false(self, raw, expected):
        settings = load_settings(MappingConfigSource({"auto_connect": raw}))

        assert settings.auto_connect is expected

    def test_settle_delay(self):
        assert load_settings(MappingConfigSource({"settle_delay": "0.25"})).settle_delay == 0.25

    def test_negative_settle_delay_is_clamped(self):
        assert load_settings(MappingConfigSource({"settle_delay": "-3"})).settle_delay == 0.0

    def test_invalid_settle_delay_uses_default(self):
        assert load_settings(MappingConfigSource({"settle_delay": "soon"})).settle_delay == 1.0

    def test_storage_dir(self, tmp_path):
        settings = load_settings(MappingConfigSource({"storage_dir": str(tmp_path)}))

        assert settings.storage_dir == Path(tmp_path)

    def test_invalid_values_are_not_rejected_at_load(self):
        """Validation happens when connecting, not when reading settings."""
        settings = load_settings(MappingConfigSource({"port": "not-a-port"}))

        assert settings.connection.validate_fields() == [
            "Port must be a valid number between 1 and 65535"
        ]


class TestConfigCoercion:
    """Test type handling on construction and replace()."""

    def test_int_port_becomes_text(self):
        assert ConnectionConfig(port=4455).port == "4455"

    def test_replace_validates(self):
        config = ConnectionConfig().replace(address="obs.local", port=4460)

        assert config.url == "ws://obs.local:4460"

    def test_replace_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            ConnectionConfig().replace(adress="obs.local")

    def test_replace_rejects_wrong_types(self):
        with pytest.raises(ValidationError):
            ConnectionConfig().replace(address=["not", "a", "host"])
