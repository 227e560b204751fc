"""
Tests for configuration and structured logging
"""

import io
import json
import logging

from savings_core import config as config_module
from savings_core.config import SavingsConfig, get_config, reload_config
from savings_core.logging_config import (
    JSONFormatter, get_logger, log_action, setup_logging, setup_logging_from_config
)


class TestSavingsConfig:
    """Test environment-based configuration"""

    def test_defaults(self, monkeypatch):
        """Test default values"""
        monkeypatch.delenv("SAVINGS_DATABASE_URL", raising=False)
        config = SavingsConfig(_env_file=None)

        assert config.database_url == "sqlite:///savings.db"
        assert config.default_interest_rate == "0.042"
        assert config.log_format == "json"
        assert config.log_file is None

    def test_environment_overrides(self, monkeypatch):
        """Test SAVINGS_ prefixed variables"""
        monkeypatch.setenv("SAVINGS_DATABASE_URL", "memory://")
        monkeypatch.setenv("SAVINGS_SQLITE_TIMEOUT_SECONDS", "1.5")
        monkeypatch.setenv("savings_log_level", "DEBUG")

        config = SavingsConfig(_env_file=None)

        assert config.database_url == "memory://"
        assert config.sqlite_timeout_seconds == 1.5
        assert config.log_level == "DEBUG"

    def test_reload_config(self, monkeypatch):
        """Test reloading replaces the global instance"""
        original = get_config()
        monkeypatch.setenv("SAVINGS_DEFAULT_INTEREST_RATE", "0.01")
        try:
            reloaded = reload_config()
            assert reloaded is get_config()
            assert reloaded.default_interest_rate == "0.01"
        finally:
            config_module.config = original


class TestStructuredLogging:
    """Test JSON log output"""

    def setup_method(self):
        """Set up a logger writing to a buffer"""
        self.buffer = io.StringIO()
        self.logger = logging.getLogger("savings_core.test_logging")
        self.logger.handlers = []
        handler = logging.StreamHandler(self.buffer)
        handler.setFormatter(JSONFormatter())
        self.logger.addHandler(handler)
        self.logger.setLevel(logging.DEBUG)
        self.logger.propagate = False

    def teardown_method(self):
        """Detach the buffer handler"""
        self.logger.handlers = []

    def test_log_action_fields(self):
        """Test structured fields appear in the JSON entry"""
        log_action(
            self.logger, "info", "deposit applied",
            account_id="acct-1", action="deposit", idempotency_key="k1",
            extra={"balance": "100.01"}
        )

        entry = json.loads(self.buffer.getvalue())
        assert entry["level"] == "INFO"
        assert entry["message"] == "deposit applied"
        assert entry["account_id"] == "acct-1"
        assert entry["action"] == "deposit"
        assert entry["idempotency_key"] == "k1"
        assert entry["extra"] == {"balance": "100.01"}
        assert "correlation_id" not in entry

    def test_log_action_respects_level(self):
        """Test records below the logger level are dropped"""
        self.logger.setLevel(logging.WARNING)
        log_action(self.logger, "info", "ignored", account_id="acct-1")
        assert self.buffer.getvalue() == ""

    def test_setup_logging(self, tmp_path):
        """Test handler setup for json and text output"""
        log_file = tmp_path / "savings.log"
        logger = setup_logging("DEBUG", "text", str(log_file), logger_name="savings_core.test_setup")
        try:
            logger.debug("hello")
            for handler in logger.handlers:
                handler.flush()
            assert "hello" in log_file.read_text()
            assert logger.level == logging.DEBUG
            assert not logger.propagate
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
                handler.close()

        logger = setup_logging("INFO", logger_name="savings_core.test_setup")
        assert isinstance(logger.handlers[0].formatter, JSONFormatter)
        assert get_logger("savings_core.test_setup") is logger
        logger.handlers = []

    def test_setup_logging_from_config(self):
        """Test logging setup driven by SavingsConfig"""
        config = SavingsConfig(_env_file=None, log_level="WARNING", log_format="text")
        logger = setup_logging_from_config(config)
        try:
            assert logger.name == "savings_core"
            assert logger.level == logging.WARNING
            assert not isinstance(logger.handlers[0].formatter, JSONFormatter)
        finally:
            for handler in logger.handlers[:]:
                logger.removeHandler(handler)
            logger.propagate = True
            logger.setLevel(logging.NOTSET)
