"""
Notification delivery for event reminders.

Only the email channel is wired to a transport. Push and SMS are accepted
channel names that deliver nothing until a provider exists for them.
"""

import logging
from typing import Dict, Optional

from app.core.config import AppConfig, load_config
from app.observability.logger import log_error, log_event, sanitize_title, timing
from app.rendering.reminder_renderer import (
    build_reminder_context,
    reminder_subject,
    render_reminder_html,
    render_reminder_plaintext,
)
from app.services.emailer import EmailDeliveryError, Emailer, select_emailer
from app.storage.models import Event, EventReminder
from app.users.directory import UserProfile

logger = logging.getLogger(__name__)


class Channel:
    name: str

    def deliver(self, user: UserProfile, event: Event, reminder: EventReminder) -> bool:
        raise NotImplementedError


class EmailChannel(Channel):
    name = "email"

    def __init__(self, emailer: Emailer, sender: str, app_name: str):
        self.emailer = emailer
        self.sender = sender
        self.app_name = app_name

    def deliver(self, user: UserProfile, event: Event, reminder: EventReminder) -> bool:
        context = build_reminder_context(event, self.app_name)
        subject = reminder_subject(event)
        try:
            with timing("reminder_email_send") as timer:
                message_id = self.emailer.send(
                    subject=subject,
                    html=render_reminder_html(context),
                    recipients=[user.email],
                    sender=self.sender,
                    plaintext=render_reminder_plaintext(context),
                )
        except EmailDeliveryError as exc:
            log_error(exc, {"action": "reminder_email_failed", "event_id": event.id, "reminder_id": reminder.id})
            return False

        log_event(
            action="reminder_email_sent",
            event_id=event.id,
            reminder_id=reminder.id,
            driver=getattr(self.emailer, "driver", "unknown"),
            title=sanitize_title(event.title),
            message_id=message_id,
            duration_ms=timer.get_duration_ms(),
        )
        return True


class NoopChannel(Channel):
    def __init__(self, name: str):
        self.name = name

    def deliver(self, user: UserProfile, event: Event, reminder: EventReminder) -> bool:
        logger.debug(f"No provider for {self.name} reminders; skipping reminder {reminder.id}")
        return False


class NotificationDispatcher:
    """deliver(channel, user, event, reminder) -> success flag."""

    def __init__(self, channels: Dict[str, Channel]):
        self.channels = channels

    def is_wired(self, channel: str) -> bool:
        return not isinstance(self.channels.get(channel), (NoopChannel, type(None)))

    def deliver(self, channel: str, user: UserProfile, event: Event, reminder: EventReminder) -> bool:
        handler = self.channels.get(channel)
        if handler is None:
            logger.warning(f"Unknown reminder channel {channel!r} for event {event.id}")
            return False
        return handler.deliver(user, event, reminder)


def build_dispatcher(cfg: Optional[AppConfig] = None, emailer: Optional[Emailer] = None) -> NotificationDispatcher:
    cfg = cfg or load_config()
    emailer = emailer or select_emailer(cfg)
    return NotificationDispatcher({
        "email": EmailChannel(emailer, sender=cfg.default_sender, app_name=cfg.app_name),
        "push": NoopChannel("push"),
        "sms": NoopChannel("sms"),
    })
