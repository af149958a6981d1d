"""Tests for settings, exceptions and logging setup."""

from datetime import timedelta
from unittest.mock import patch

import pytest

from changekeeper.core.config import Settings
from changekeeper.core.exceptions import (
    ChangeExecutionFailedError,
    ConfigurationError,
    DuplicateChangeIdError,
    ErrorCode,
    LockUnobtainableError,
    StoreUnavailableError,
)
from changekeeper.log.logging import configure_logging
from changekeeper.migrations.models import ExecutionReport


class TestSettings:
    """Tests for Settings."""

    def test_lock_policy_from_settings(self):
        """Test lock settings convert to a LockPolicy."""
        settings = Settings(
            wait_for_lock=True,
            lock_wait_timeout_minutes=2,
            lock_poll_interval_seconds=3,
            throw_if_lock_unobtainable=True,
        )

        policy = settings.lock_policy

        assert policy.wait_for_lock is True
        assert policy.max_wait == timedelta(minutes=2)
        assert policy.poll_interval == timedelta(seconds=3)
        assert policy.fail_if_unobtainable is True

    def test_negative_lock_timeout_rejected(self):
        settings = Settings(lock_wait_timeout_minutes=-1)

        with pytest.raises(ConfigurationError) as exc_info:
            settings.lock_policy

        assert "LOCK_WAIT_TIMEOUT_MINUTES" in exc_info.value.message
        assert exc_info.value.error_code == ErrorCode.CONFIGURATION_ERROR

    def test_negative_poll_interval_rejected(self):
        settings = Settings(lock_poll_interval_seconds=-0.5)

        with pytest.raises(ConfigurationError):
            settings.lock_policy

    def test_profiles_parsed_from_comma_list(self):
        settings = Settings(active_profiles="default, staging ,,eu")

        assert settings.profiles == ["default", "staging", "eu"]

    def test_logging_config_development(self):
        """Test development forces human-readable logs."""
        settings = Settings(environment="development", json_logs=True, debug=True)

        config = settings.logging_config

        assert config["json_logs"] is False
        assert config["log_level"] == "DEBUG"

    def test_logging_config_production(self):
        settings = Settings(environment="production", json_logs=True, log_level="WARNING")

        config = settings.logging_config

        assert config["json_logs"] is True
        assert config["log_level"] == "WARNING"


class TestExceptions:
    """Tests for the exception hierarchy."""

    def test_error_codes(self):
        assert LockUnobtainableError().error_code == ErrorCode.LOCK_UNOBTAINABLE
        assert DuplicateChangeIdError("x").error_code == ErrorCode.DUPLICATE_CHANGE_ID
        assert StoreUnavailableError("get", "down").error_code == ErrorCode.STORE_UNAVAILABLE

    def test_change_execution_failed(self):
        """Test the failure carries id, cause and report."""
        cause = RuntimeError("boom")
        report = ExecutionReport(invoked=["1"])

        error = ChangeExecutionFailedError("2", cause, report)

        assert error.change_id == "2"
        assert error.cause is cause
        assert error.report is report
        assert "'2'" in str(error)
        assert error.to_dict() == {
            "error": "ChangeExecutionFailedError",
            "code": ErrorCode.CHANGE_EXECUTION_FAILED,
            "message": "Change set '2' failed: boom",
            "change_id": "2",
        }


class TestConfigureLogging:
    """Tests for loguru setup."""

    def test_json_sink(self):
        with patch("changekeeper.log.logging.logger") as mock_logger:
            configure_logging({"app_name": "svc", "log_level": "INFO", "json_logs": True})

        mock_logger.remove.assert_called_once()
        mock_logger.configure.assert_called_once_with(extra={"app_name": "svc"})
        assert mock_logger.add.call_args.kwargs["serialize"] is True
        assert mock_logger.add.call_args.kwargs["level"] == "INFO"

    def test_human_sink(self):
        with patch("changekeeper.log.logging.logger") as mock_logger:
            configure_logging({"app_name": "svc", "log_level": "DEBUG", "json_logs": False})

        assert "serialize" not in mock_logger.add.call_args.kwargs
        assert mock_logger.add.call_args.kwargs["level"] == "DEBUG"
