"""
Unit tests for pubky_messenger.utils module.

Tests logging setup and small helpers.
"""

import logging
import time

from pubky_messenger.utils import PACKAGE_LOGGER, abbreviate_key, configure_logging, unix_timestamp


class TestHelpers:
    """Test small helper functions."""

    def test_unix_timestamp(self):
        assert abs(unix_timestamp() - time.time()) < 5
        assert isinstance(unix_timestamp(), int)

    def test_abbreviate_key(self, alice):
        assert abbreviate_key(alice.public_key()) == str(alice.public_key())[:8]
        assert abbreviate_key("abc", length=2) == "ab"
        assert abbreviate_key("abc") == "abc"


class TestConfigureLogging:
    """Test package logger configuration."""

    def teardown_method(self):
        package_logger = logging.getLogger(PACKAGE_LOGGER)
        for handler in list(package_logger.handlers):
            package_logger.removeHandler(handler)
            handler.close()

    def test_console_only(self, config):
        config.set("logging", "level", "debug")
        package_logger = configure_logging(config)

        assert package_logger.level == logging.DEBUG
        assert len(package_logger.handlers) == 1

    def test_file_logging(self, config, temp_dir):
        config.set("logging", "file_logging", True)
        config.set("logging", "console_logging", False)
        package_logger = configure_logging(config, log_dir=temp_dir / "logs")

        package_logger.warning("written to file")
        for handler in package_logger.handlers:
            handler.flush()

        assert "written to file" in (temp_dir / "logs" / "messenger.log").read_text()

    def test_reconfigure_replaces_handlers(self, config):
        configure_logging(config)
        package_logger = configure_logging(config)
        assert len(package_logger.handlers) == 1

    def test_unknown_level_falls_back_to_info(self, config):
        config.set("logging", "level", "chatty")
        assert configure_logging(config).level == logging.INFO
