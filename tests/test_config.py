"""Tests for configuration management module."""

import logging
import os
from pathlib import Path
from unittest.mock import patch

import pytest

from sheetlens import __version__
from sheetlens.config import Settings, setup_logging, validate_settings_on_startup
from sheetlens.utils.exceptions import ConfigurationError
from sheetlens.utils.logging import StructuredLogFormatter


class TestSettings:
    """Tests for the Settings class."""

    def test_default_values(self) -> None:
        """Test default configuration values."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        # Loading defaults
        assert settings.max_concurrent_file_loads == 5
        assert settings.csv_sample_lines == 5

        # String pool defaults
        assert settings.string_pool_max_entries == 50_000
        assert settings.string_pool_max_length == 100

        # File log defaults
        assert settings.enable_file_logging is True
        assert settings.file_log_dir.endswith(str(Path(".sheetlens") / "logs"))
        assert settings.log_retention_days == 30
        assert settings.app_version == __version__

        # Logging defaults
        assert settings.log_level == "INFO"
        assert settings.debug is False

    def test_environment_variable_prefix(self) -> None:
        """Test that environment variables use SHEETLENS_ prefix."""
        env_vars = {
            "SHEETLENS_MAX_CONCURRENT_FILE_LOADS": "8",
            "SHEETLENS_STRING_POOL_MAX_ENTRIES": "10",
            "SHEETLENS_LOG_LEVEL": "DEBUG",
            "SHEETLENS_ENABLE_FILE_LOGGING": "false",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_concurrent_file_loads == 8
        assert settings.string_pool_max_entries == 10
        assert settings.log_level == "DEBUG"
        assert settings.enable_file_logging is False

    def test_unprefixed_variables_ignored(self) -> None:
        """Test that variables without the prefix have no effect."""
        with patch.dict(os.environ, {"MAX_CONCURRENT_FILE_LOADS": "9"}, clear=True):
            settings = Settings(_env_file=None)

        assert settings.max_concurrent_file_loads == 5

    def test_file_log_path_property(self) -> None:
        """Test file_log_path expands the user directory."""
        env_vars = {"SHEETLENS_FILE_LOG_DIR": "~/sheet-logs", "HOME": "/home/tester"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)
            assert settings.file_log_path == Path("/home/tester/sheet-logs")

    def test_log_level_int_property(self) -> None:
        """Test log_level_int computed property."""
        test_cases = [
            ("DEBUG", logging.DEBUG),
            ("INFO", logging.INFO),
            ("WARNING", logging.WARNING),
            ("ERROR", logging.ERROR),
            ("CRITICAL", logging.CRITICAL),
        ]

        for level_str, expected_int in test_cases:
            env_vars = {"SHEETLENS_LOG_LEVEL": level_str}
            with patch.dict(os.environ, env_vars, clear=True):
                settings = Settings(_env_file=None)
            assert settings.log_level_int == expected_int, f"Failed for {level_str}"

    def test_to_safe_dict(self) -> None:
        """Test to_safe_dict lists every setting."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        safe_dict = settings.to_safe_dict()

        assert safe_dict["max_concurrent_file_loads"] == 5
        assert safe_dict["log_level"] == "INFO"
        assert set(safe_dict) == set(Settings.model_fields)


class TestSettingsValidation:
    """Tests for settings validation."""

    def test_lowercase_log_level_normalized(self) -> None:
        """Test lowercase log levels are normalized to uppercase."""
        env_vars = {"SHEETLENS_LOG_LEVEL": "debug"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)
            assert settings.log_level == "DEBUG"

    def test_invalid_log_level_raises_error(self) -> None:
        """Test invalid log level raises validation error."""
        env_vars = {"SHEETLENS_LOG_LEVEL": "INVALID"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="Invalid log level"),
        ):
            Settings(_env_file=None)

    @pytest.mark.parametrize("value", ["0", "33"])
    def test_concurrency_must_be_between_1_and_32(self, value: str) -> None:
        """Test parallel load count bounds."""
        env_vars = {"SHEETLENS_MAX_CONCURRENT_FILE_LOADS": value}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="between 1 and 32"),
        ):
            Settings(_env_file=None)

    def test_pool_limits_must_be_non_negative(self) -> None:
        """Test string pool limits reject negative values."""
        env_vars = {"SHEETLENS_STRING_POOL_MAX_LENGTH": "-1"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="non-negative"),
        ):
            Settings(_env_file=None)

    def test_sample_lines_must_be_positive(self) -> None:
        """Test CSV sample size must be at least one line."""
        env_vars = {"SHEETLENS_CSV_SAMPLE_LINES": "0"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="at least 1"),
        ):
            Settings(_env_file=None)

    def test_retention_must_not_be_negative(self) -> None:
        """Test retention days validation."""
        env_vars = {"SHEETLENS_LOG_RETENTION_DAYS": "-5"}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="log_retention_days"),
        ):
            Settings(_env_file=None)

    def test_blank_log_dir_rejected_when_logging_enabled(self) -> None:
        """Test a log directory is required while file logging is on."""
        env_vars = {"SHEETLENS_FILE_LOG_DIR": "  "}
        with (
            patch.dict(os.environ, env_vars, clear=True),
            pytest.raises(ValueError, match="file_log_dir must be set"),
        ):
            Settings(_env_file=None)

    def test_blank_log_dir_allowed_when_logging_disabled(self) -> None:
        """Test the log directory may be blank while file logging is off."""
        env_vars = {
            "SHEETLENS_FILE_LOG_DIR": "",
            "SHEETLENS_ENABLE_FILE_LOGGING": "false",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)
        assert settings.file_log_dir == ""


class TestValidateSettingsOnStartup:
    """Tests for the validate_settings_on_startup function."""

    def test_warns_when_retention_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test warning is logged when load logs are never pruned."""
        env_vars = {"SHEETLENS_LOG_RETENTION_DAYS": "0"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "retention is disabled" in caplog.text

    def test_no_retention_warning_without_file_logging(
        self, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test no retention warning when file logging is off."""
        env_vars = {
            "SHEETLENS_LOG_RETENTION_DAYS": "0",
            "SHEETLENS_ENABLE_FILE_LOGGING": "false",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "retention is disabled" not in caplog.text

    def test_warns_when_pool_disabled(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test warning when the string pool cannot hold anything."""
        env_vars = {"SHEETLENS_STRING_POOL_MAX_ENTRIES": "0"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.WARNING):
            validate_settings_on_startup(settings)

        assert "String pool is disabled" in caplog.text

    def test_logs_configuration_summary(self, caplog: pytest.LogCaptureFixture) -> None:
        """Test configuration summary is logged at info level."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        with caplog.at_level(logging.INFO):
            validate_settings_on_startup(settings)

        assert "Configuration loaded" in caplog.text
        assert "max_concurrent_file_loads=5" in caplog.text

    def test_log_dir_that_is_a_file_rejected(self, tmp_path: Path) -> None:
        """Test a file in place of the load log directory is a configuration error."""
        blocker = tmp_path / "logs"
        blocker.write_text("not a directory")
        env_vars = {"SHEETLENS_FILE_LOG_DIR": str(blocker)}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        with pytest.raises(ConfigurationError) as exc_info:
            validate_settings_on_startup(settings)

        assert exc_info.value.details == {"field": "file_log_dir", "value": str(blocker)}

    def test_log_dir_file_ignored_without_file_logging(self, tmp_path: Path) -> None:
        """Test the directory check only applies when file logging is on."""
        blocker = tmp_path / "logs"
        blocker.write_text("not a directory")
        env_vars = {
            "SHEETLENS_FILE_LOG_DIR": str(blocker),
            "SHEETLENS_ENABLE_FILE_LOGGING": "false",
        }
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        validate_settings_on_startup(settings)


class TestSetupLogging:
    """Tests for the setup_logging function."""

    @pytest.fixture(autouse=True)
    def restore_root_logger(self):
        root = logging.getLogger()
        handlers = root.handlers[:]
        level = root.level
        yield
        root.handlers[:] = handlers
        root.setLevel(level)

    def test_applies_configured_level(self) -> None:
        """Test the root logger takes the configured level."""
        with patch.dict(os.environ, {"SHEETLENS_LOG_LEVEL": "WARNING"}, clear=True):
            settings = Settings(_env_file=None)

        setup_logging(settings)

        root = logging.getLogger()
        assert root.level == logging.WARNING
        assert len(root.handlers) == 1
        assert isinstance(root.handlers[0].formatter, StructuredLogFormatter)

    def test_debug_forces_debug_level(self) -> None:
        """Test debug mode overrides the configured level."""
        env_vars = {"SHEETLENS_LOG_LEVEL": "ERROR", "SHEETLENS_DEBUG": "true"}
        with patch.dict(os.environ, env_vars, clear=True):
            settings = Settings(_env_file=None)

        setup_logging(settings)

        assert logging.getLogger().level == logging.DEBUG

    def test_validates_settings(self) -> None:
        """Test startup validation runs after logging is configured."""
        with patch.dict(os.environ, {}, clear=True):
            settings = Settings(_env_file=None)

        with patch("sheetlens.config.validate_settings_on_startup") as mock_validate:
            setup_logging(settings)

        mock_validate.assert_called_once_with(settings)
