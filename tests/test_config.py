"""Tests for environment-driven settings."""

import pydantic
import pytest

from scanalert.config import Settings


class TestSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("BACKEND_PORT", raising=False)
        monkeypatch.delenv("X_ZOHO_CATALYST_LISTEN_PORT", raising=False)
        s = Settings(_env_file=None)

        assert s.backend_port == 3000
        assert s.notification_timezone == "Asia/Kolkata"
        assert s.institution_name == "College"
        assert s.sms_retry_max_attempts == 1

    def test_platform_port_variable(self, monkeypatch):
        monkeypatch.delenv("BACKEND_PORT", raising=False)
        monkeypatch.setenv("X_ZOHO_CATALYST_LISTEN_PORT", "9000")

        assert Settings(_env_file=None).backend_port == 9000

    def test_unknown_timezone_rejected(self, monkeypatch):
        monkeypatch.setenv("NOTIFICATION_TIMEZONE", "Mars/Olympus_Mons")

        with pytest.raises(pydantic.ValidationError):
            Settings(_env_file=None)

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("LOG_LEVEL", "debug")
        assert Settings(_env_file=None).log_level == "DEBUG"

    def test_cors_origins_list(self, monkeypatch):
        monkeypatch.setenv("CORS_ORIGINS", "http://kiosk-1.local, http://kiosk-2.local,")
        assert Settings(_env_file=None).cors_origins_list == [
            "http://kiosk-1.local",
            "http://kiosk-2.local",
        ]

    def test_missing_twilio_credentials_reported(self, monkeypatch):
        for name in ("TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_PHONE_NUMBER"):
            monkeypatch.delenv(name, raising=False)
        s = Settings(_env_file=None)

        with pytest.raises(ValueError, match="TWILIO_AUTH_TOKEN"):
            s.validate_required_for_production()

    def test_complete_twilio_credentials_pass(self, monkeypatch):
        monkeypatch.setenv("TWILIO_ACCOUNT_SID", "ACtest")
        monkeypatch.setenv("TWILIO_AUTH_TOKEN", "token")
        monkeypatch.setenv("TWILIO_PHONE_NUMBER", "+15005550006")

        Settings(_env_file=None).validate_required_for_production()
