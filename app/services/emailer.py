from __future__ import annotations

import logging
import os
import smtplib
import time
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

import httpx

from app.core.config import AppConfig, load_config

logger = logging.getLogger(__name__)

BACKOFFS = [0.2, 0.4, 0.8]


class EmailDeliveryError(Exception):
    pass


class EmailConfigError(EmailDeliveryError):
    pass


def _include_plaintext() -> bool:
    """Check if plaintext should be included in emails."""
    return os.getenv("INCLUDE_PLAINTEXT", "true").lower() == "true"


class Emailer:
    driver: str

    def send(self, subject: str, html: str, recipients: List[str], sender: str, plaintext: Optional[str] = None) -> Optional[str]:
        raise NotImplementedError


class ConsoleEmailer(Emailer):
    driver = "console"

    def send(self, subject: str, html: str, recipients: List[str], sender: str, plaintext: Optional[str] = None) -> Optional[str]:
        # Avoid logging full HTML.
        preview_len = min(len(html), 200)
        logger.info(f"[console-email] from={sender} to={','.join(recipients)} subject={subject} html_preview={html[:preview_len]!r}...")

        if plaintext and _include_plaintext():
            plaintext_preview_len = min(len(plaintext), 200)
            logger.info(f"[console-email] plaintext_preview={plaintext[:plaintext_preview_len]!r}...")

        return f"MSG-LOCAL-{int(time.time()*1000)}"


class SmtpEmailer(Emailer):
    driver = "smtp"

    def __init__(self, host: str, port: int, username: str, password: str, use_tls: bool):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls

    def _build_message(self, subject: str, html: str, recipients: List[str], sender: str, plaintext: Optional[str]):
        if plaintext and _include_plaintext():
            message = MIMEMultipart("alternative")
            message.attach(MIMEText(plaintext, "plain", "utf-8"))
            message.attach(MIMEText(html, "html", "utf-8"))
        else:
            message = MIMEText(html, "html", "utf-8")
        message["Subject"] = subject
        message["From"] = sender
        message["To"] = ", ".join(recipients)
        return message

    def _send_once(self, sender: str, recipients: List[str], payload: str) -> None:
        server = smtplib.SMTP(self.host, self.port, timeout=15)
        try:
            if self.use_tls:
                server.starttls()
            if self.username:
                server.login(self.username, self.password)
            server.sendmail(sender, recipients, payload)
        finally:
            server.quit()

    def send(self, subject: str, html: str, recipients: List[str], sender: str, plaintext: Optional[str] = None) -> Optional[str]:
        payload = self._build_message(subject, html, recipients, sender, plaintext).as_string()

        last_exc: Exception | None = None
        # One attempt per backoff, plus a final attempt with no sleep after it.
        for delay in BACKOFFS + [None]:
            try:
                self._send_once(sender, recipients, payload)
                return None
            except Exception as exc:
                last_exc = exc
                if delay is not None:
                    time.sleep(delay)
        raise EmailDeliveryError(f"SMTP send failed after retries: {last_exc}")


class SendgridEmailer(Emailer):
    driver = "sendgrid"

    url = "https://api.sendgrid.com/v3/mail/send"

    def __init__(self, api_key: str):
        self.api_key = api_key

    def send(self, subject: str, html: str, recipients: List[str], sender: str, plaintext: Optional[str] = None) -> Optional[str]:
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}

        content = [{"type": "text/html", "value": html}]
        if plaintext and _include_plaintext():
            content.insert(0, {"type": "text/plain", "value": plaintext})

        data = {
            "personalizations": [{"to": [{"email": r} for r in recipients]}],
            "from": {"email": sender},
            "subject": subject,
            "content": content,
        }
        last_error: str | None = None
        for delay in BACKOFFS + [None]:
            try:
                with httpx.Client(timeout=15) as client:
                    resp = client.post(self.url, headers=headers, json=data)
                if resp.status_code in (200, 202):
                    return resp.headers.get("X-Message-Id") or None
                last_error = f"{resp.status_code} {resp.text}"
            except httpx.HTTPError as exc:
                last_error = str(exc)
            if delay is not None:
                time.sleep(delay)
        raise EmailDeliveryError(f"SendGrid send failed after retries: {last_error}")


def select_emailer(cfg: Optional[AppConfig] = None) -> Emailer:
    cfg = cfg or load_config()
    driver = cfg.mail_driver
    if driver == "console":
        return ConsoleEmailer()
    if driver == "smtp":
        if not cfg.smtp_host or not cfg.smtp_port:
            raise EmailConfigError("SMTP configuration missing: SMTP_HOST/SMTP_PORT required")
        return SmtpEmailer(
            host=cfg.smtp_host,
            port=cfg.smtp_port,
            username=cfg.smtp_username or "",
            password=cfg.smtp_password or "",
            use_tls=cfg.smtp_use_tls,
        )
    if driver == "sendgrid":
        if not cfg.sendgrid_api_key:
            raise EmailConfigError("SENDGRID_API_KEY missing")
        return SendgridEmailer(api_key=cfg.sendgrid_api_key)
    raise EmailConfigError(f"Unsupported MAIL_DRIVER: {driver}")
