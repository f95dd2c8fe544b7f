"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from slotbooker.config import CLIENT_SECRET_ENV, AppConfig


def _write(tmp_path, text: str):
    path = tmp_path / "config.yaml"
    path.write_text(text, encoding="utf-8")
    return path


class TestAppConfig:
    """Tests for AppConfig."""

    def test_load_with_defaults(self, tmp_path):
        config = AppConfig.load_from_yaml(_write(tmp_path, "client_id: abc\ntenant_id: xyz\n"))

        assert config.timezone == "Asia/Kolkata"
        assert config.defaults.slot_duration == 20
        assert config.defaults.break_duration == 5
        assert config.defaults.lookahead_days == 7
        assert config.get_authority_url() == "https://login.microsoftonline.com/xyz"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            AppConfig.load_from_yaml(tmp_path / "absent.yaml")

    def test_invalid_yaml(self, tmp_path):
        with pytest.raises(ValueError, match="Invalid YAML"):
            AppConfig.load_from_yaml(_write(tmp_path, "client_id: [unclosed\n"))

    def test_root_must_be_mapping(self, tmp_path):
        with pytest.raises(ValueError, match="mapping"):
            AppConfig.load_from_yaml(_write(tmp_path, "- a\n- b\n"))

    def test_negative_break_rejected(self, tmp_path):
        with pytest.raises(ValidationError):
            AppConfig.load_from_yaml(
                _write(tmp_path, "client_id: a\ntenant_id: b\ndefaults:\n  break_duration: -1\n")
            )

    def test_blank_subject_rejected(self):
        with pytest.raises(ValidationError):
            AppConfig(client_id="a", tenant_id="b", booking_subject="   ")

    def test_client_secret_prefers_environment(self, monkeypatch):
        monkeypatch.setenv(CLIENT_SECRET_ENV, "from-env")
        config = AppConfig(client_id="a", tenant_id="b", client_secret="from-file")

        assert config.get_client_secret() == "from-env"

    def test_missing_client_secret(self, monkeypatch):
        monkeypatch.delenv(CLIENT_SECRET_ENV, raising=False)

        with pytest.raises(ValueError, match=CLIENT_SECRET_ENV):
            AppConfig(client_id="a", tenant_id="b").get_client_secret()
