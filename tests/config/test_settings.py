"""Tests for settings resolution and logging setup."""

import logging
from decimal import Decimal
from pathlib import Path

import pytest
import structlog
from pydantic import ValidationError

from checkout.config.logging import configure_logging
from checkout.config.settings import CheckoutSettings
from checkout.domain.model.value_objects import Money


class TestCheckoutSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("CHECKOUT_TAX_RATE", raising=False)
        settings = CheckoutSettings()
        assert settings.tax_rate == Decimal("18")
        assert settings.currency == "INR"
        assert settings.max_commit_attempts == 3
        assert settings.database_path.name == "checkout.db"

    def test_env_overrides(self, monkeypatch):
        monkeypatch.setenv("CHECKOUT_TAX_RATE", "12.5")
        monkeypatch.setenv("CHECKOUT_DEFAULT_SHIPPING__BASE_RATE", "250")
        settings = CheckoutSettings()
        assert settings.tax_rate == Decimal("12.5")
        assert settings.default_shipping.to_domain("INR").base_rate == Money.of("250")

    def test_cli_flags_win_and_none_is_dropped(self, monkeypatch):
        monkeypatch.setenv("CHECKOUT_DATABASE_PATH", "/tmp/from-env.db")
        settings = CheckoutSettings.from_cli(database_path=Path("/tmp/from-cli.db"), verbose=None)
        assert settings.database_path == Path("/tmp/from-cli.db")
        assert settings.verbose is False

    def test_rejects_zero_attempts(self):
        with pytest.raises(ValidationError):
            CheckoutSettings(max_commit_attempts=0)

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValidationError):
            CheckoutSettings(read_timeout=0)


class TestConfigureLogging:

    @pytest.fixture(autouse=True)
    def _restore(self):
        yield
        logging.getLogger().handlers.clear()
        logging.getLogger("checkout").setLevel(logging.NOTSET)
        structlog.reset_defaults()

    def test_verbose_enables_debug_for_checkout(self):
        configure_logging(verbose=True)
        assert logging.getLogger("checkout").level == logging.DEBUG
        assert logging.getLogger("sqlalchemy").level == logging.WARNING

    def test_quiet_by_default(self):
        configure_logging()
        assert logging.getLogger("checkout").level == logging.WARNING
        assert len(logging.getLogger().handlers) == 1
