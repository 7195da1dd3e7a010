import os
from unittest.mock import patch

from app.core.config import load_config


def test_defaults():
    with patch.dict(os.environ, {}, clear=True):
        cfg = load_config()

    assert cfg.database_url == "sqlite:///./calendar.db"
    assert cfg.mail_driver == "console"
    assert cfg.run_scheduler is False
    assert cfg.lookahead_days == 30
    assert cfg.retention_days == 30
    assert cfg.default_page_size == 20
    assert cfg.upcoming_limit == 10
    assert cfg.api_key is None


def test_env_overrides():
    env = {
        "DATABASE_URL": "postgresql://db/calendar",
        "MAIL_DRIVER": "SMTP",
        "SMTP_HOST": "mail.example.com",
        "SMTP_PORT": "587",
        "SMTP_USE_TLS": "false",
        "LOOKAHEAD_DAYS": "14",
        "RETENTION_DAYS": "90",
        "API_KEY": "k",
    }
    with patch.dict(os.environ, env, clear=True):
        cfg = load_config()

    assert cfg.database_url == "postgresql://db/calendar"
    assert cfg.mail_driver == "smtp"
    assert cfg.smtp_port == 587
    assert cfg.smtp_use_tls is False
    assert cfg.lookahead_days == 14
    assert cfg.retention_days == 90
    assert cfg.api_key == "k"


def test_malformed_numbers_fall_back():
    with patch.dict(os.environ, {"SMTP_PORT": "abc", "DEFAULT_PAGE_SIZE": "lots", "RETENTION_DAYS": "-5", "LOOKAHEAD_DAYS": "0"}, clear=True):
        cfg = load_config()

    assert cfg.smtp_port is None
    assert cfg.default_page_size == 20
    assert cfg.retention_days == 30
    assert cfg.lookahead_days == 30
