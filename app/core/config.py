import os
from typing import Optional

from pydantic import BaseModel


class AppConfig(BaseModel):
    app_name: str = "Calendar.io"
    database_url: str = "sqlite:///./calendar.db"
    db_timeout_seconds: int = 10
    api_key: Optional[str] = None

    mail_driver: str = "console"
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_use_tls: bool = True
    sendgrid_api_key: Optional[str] = None
    default_sender: str = "no-reply@calendar.io"

    run_scheduler: bool = False
    scheduler_timezone: str = "UTC"
    reminder_interval_seconds: int = 60
    recurrence_cron: str = "0 1 * * 0"
    retention_cron: str = "0 2 * * *"
    lookahead_days: int = 30
    retention_days: int = 30

    default_page_size: int = 20
    upcoming_limit: int = 10


def _int_env(name: str, default: int) -> int:
    """Positive integer from the environment; anything else falls back to the default."""
    raw = os.getenv(name)
    if raw is None or not raw.strip().isdigit() or int(raw) <= 0:
        return default
    return int(raw)


def _bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes")


def load_config() -> AppConfig:
    smtp_port_str = os.getenv("SMTP_PORT")
    smtp_port = int(smtp_port_str) if smtp_port_str and smtp_port_str.isdigit() else None
    return AppConfig(
        app_name=os.getenv("APP_NAME", "Calendar.io"),
        database_url=os.getenv("DATABASE_URL", "sqlite:///./calendar.db"),
        db_timeout_seconds=_int_env("DB_TIMEOUT_SECONDS", 10),
        api_key=os.getenv("API_KEY"),
        mail_driver=os.getenv("MAIL_DRIVER", "console").lower(),
        smtp_host=os.getenv("SMTP_HOST"),
        smtp_port=smtp_port,
        smtp_username=os.getenv("SMTP_USERNAME"),
        smtp_password=os.getenv("SMTP_PASSWORD"),
        smtp_use_tls=_bool_env("SMTP_USE_TLS", True),
        sendgrid_api_key=os.getenv("SENDGRID_API_KEY"),
        default_sender=os.getenv("DEFAULT_SENDER", "no-reply@calendar.io"),
        run_scheduler=os.getenv("RUN_SCHEDULER", "0") == "1",
        scheduler_timezone=os.getenv("SCHEDULER_TIMEZONE", "UTC"),
        reminder_interval_seconds=_int_env("REMINDER_INTERVAL_SECONDS", 60),
        recurrence_cron=os.getenv("RECURRENCE_CRON", "0 1 * * 0"),
        retention_cron=os.getenv("RETENTION_CRON", "0 2 * * *"),
        lookahead_days=_int_env("LOOKAHEAD_DAYS", 30),
        retention_days=_int_env("RETENTION_DAYS", 30),
        default_page_size=_int_env("DEFAULT_PAGE_SIZE", 20),
        upcoming_limit=_int_env("UPCOMING_LIMIT", 10),
    )
