"""Tests for configuration management."""

import os
from pathlib import Path
from unittest.mock import patch

import pytest

from twirl.config import Config, get_config, reset_config, validate_path
from twirl.exceptions import ConfigError, PathTraversalError

NO_CONFIG = Path("/nonexistent/config.yaml")


class TestValidatePath:
    """Tests for path validation."""

    def test_validate_path_expands_user(self):
        """Test that ~ is expanded."""
        path = validate_path(Path("~/test"))
        assert str(path).startswith(str(Path.home()))

    def test_validate_path_resolves_absolute(self):
        """Test that path is resolved to absolute."""
        path = validate_path(Path("./relative"))
        assert path.is_absolute()

    def test_validate_path_outside_allowed_bases(self):
        """Test path outside allowed bases raises error."""
        allowed = Path.home() / "allowed-only"

        with pytest.raises(PathTraversalError):
            validate_path(Path("/etc/passwd"), allowed_bases=[allowed])

    def test_validate_path_with_dotdot(self):
        """Test path with .. raises error without allowed_bases."""
        with pytest.raises(PathTraversalError):
            validate_path(Path.home() / "foo" / ".." / "bar")

    def test_validate_path_with_dotdot_allowed(self):
        """Test path with .. is allowed when within allowed_bases."""
        path = validate_path(
            Path.home() / "foo" / ".." / "bar",
            allowed_bases=[Path.home()]
        )
        assert path.is_absolute()


class TestConfig:
    """Tests for Config class."""

    @pytest.fixture(autouse=True)
    def reset_singleton(self):
        """Reset config singleton before each test."""
        reset_config()
        yield
        reset_config()

    @pytest.fixture
    def config_file(self, tmp_path):
        """Config file location patched onto Config."""
        path = tmp_path / "config.yaml"
        with patch.object(Config, "CONFIG_FILE", path):
            yield path

    def test_defaults_without_config_file(self):
        """Test defaults when no config file exists."""
        with patch.object(Config, "CONFIG_FILE", NO_CONFIG):
            with patch.dict(os.environ, {}, clear=False):
                os.environ.pop("TWIRL_DATA_DIR", None)
                os.environ.pop("TWIRL_DEBUG", None)
                config = Config()
                assert config.max_chats == 10
                assert config.max_chat_length == 10000
                assert config.max_messages == 50
                assert config.debug is False
                assert config.data_dir == Config.DEFAULT_DATA_DIR
                assert config.storage_path == Config.DEFAULT_DATA_DIR / "storage.json"

    def test_values_from_config_file(self, config_file):
        """Test values are read from the YAML file."""
        config_file.write_text("max_chats: 3\nmax_chat_length: 500\nmax_messages: 7\ndebug: true\n")
        with patch.dict(os.environ, {}, clear=False):
            os.environ.pop("TWIRL_DEBUG", None)
            config = Config()
            assert config.max_chats == 3
            assert config.max_chat_length == 500
            assert config.max_messages == 7
            assert config.debug is True

    @pytest.mark.parametrize("value", ["0", "-1", "ten", "true"])
    def test_invalid_max_chats(self, config_file, value):
        """Test non-positive or non-integer values are rejected."""
        config_file.write_text(f"max_chats: {value}\n")
        config = Config()
        with pytest.raises(ConfigError):
            config.max_chats

    @pytest.mark.parametrize("value", [1, 20, 27])
    def test_max_chat_length_must_exceed_marker(self, config_file, value):
        """Test a length with no room beyond the truncation marker is rejected."""
        config_file.write_text(f"max_chat_length: {value}\n")
        config = Config()
        with pytest.raises(ConfigError):
            config.max_chat_length

    def test_max_chat_length_just_above_marker(self, config_file):
        """Test the smallest usable length is accepted."""
        config_file.write_text("max_chat_length: 28\n")
        assert Config().max_chat_length == 28

    def test_log_file_unset(self, config_file):
        """Test no log file is configured by default."""
        config_file.write_text("max_chats: 3\n")
        assert Config().log_file is None

    def test_log_file_from_config(self, config_file):
        """Test a log file under the home directory is accepted."""
        config_file.write_text("log_file: ~/twirl-test.log\n")
        assert Config().log_file == (Path.home() / "twirl-test.log").resolve()

    def test_log_file_outside_home_rejected(self, config_file):
        """Test a log file outside allowed bases is rejected."""
        config_file.write_text("log_file: /etc/twirl.log\n")
        with pytest.raises(PathTraversalError):
            Config().log_file

    def test_malformed_yaml_uses_defaults(self, config_file):
        """Test a broken config file falls back to defaults."""
        config_file.write_text("max_chats: [unclosed\n")
        config = Config()
        assert config.max_chats == 10

    def test_non_mapping_yaml_ignored(self, config_file):
        """Test a config file that is not a mapping is ignored."""
        config_file.write_text("- just\n- a list\n")
        config = Config()
        assert config.max_messages == 50

    def test_data_dir_from_env(self, config_file):
        """Test data directory from environment variable."""
        test_dir = Path.home() / "test-twirl-env"
        with patch.dict(os.environ, {"TWIRL_DATA_DIR": str(test_dir)}):
            config = Config()
            assert config.data_dir == test_dir
            assert config.storage_path == test_dir / "storage.json"

    def test_env_overrides_config_file(self, config_file):
        """Test that environment variable has higher priority than config file."""
        env_dir = Path.home() / "env-twirl"
        config_file.write_text(f"data_dir: {Path.home() / 'file-twirl'}\n")
        with patch.dict(os.environ, {"TWIRL_DATA_DIR": str(env_dir)}):
            config = Config()
            assert config.data_dir == env_dir

    def test_data_dir_outside_home_rejected(self, config_file):
        """Test data directory must live under the home directory."""
        with patch.dict(os.environ, {"TWIRL_DATA_DIR": "/etc/twirl"}):
            config = Config()
            with pytest.raises(PathTraversalError):
                config.data_dir

    @pytest.mark.parametrize("value,expected", [("1", True), ("yes", True), ("0", False), ("off", False)])
    def test_debug_from_env(self, config_file, value, expected):
        """Test TWIRL_DEBUG overrides the config file."""
        config_file.write_text("debug: true\n")
        with patch.dict(os.environ, {"TWIRL_DEBUG": value}):
            assert Config().debug is expected

    def test_ensure_data_dir(self, config_file, tmp_path):
        """Test ensuring the data directory exists."""
        test_dir = tmp_path / "data"
        with patch.object(Config, "DEFAULT_DATA_DIR", test_dir):
            with patch.dict(os.environ, {}, clear=False):
                os.environ.pop("TWIRL_DATA_DIR", None)
                Config().ensure_data_dir()
        assert test_dir.exists()


class TestGetConfig:
    """Tests for get_config singleton."""

    @pytest.fixture(autouse=True)
    def reset_singleton(self):
        """Reset config singleton before each test."""
        reset_config()
        yield
        reset_config()

    def test_get_config_returns_same_instance(self):
        """Test get_config returns singleton."""
        config1 = get_config()
        config2 = get_config()
        assert config1 is config2

    def test_reset_config_clears_singleton(self):
        """Test reset_config clears the singleton."""
        config1 = get_config()
        reset_config()
        config2 = get_config()
        assert config1 is not config2
