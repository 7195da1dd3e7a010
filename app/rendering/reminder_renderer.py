from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List

from jinja2 import Environment, FileSystemLoader, select_autoescape

from app.storage.models import Event


TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_env = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)


def _human(dt: datetime, all_day: bool = False) -> str:
    day = str(int(dt.strftime("%d")))
    if all_day:
        return f"{dt.strftime('%a')}, {dt.strftime('%b')} {day}, {dt.strftime('%Y')} (all day)"
    return f"{dt.strftime('%a')}, {dt.strftime('%b')} {day}, {dt.strftime('%Y')} {dt.strftime('%H:%M')} UTC"


def reminder_subject(event: Event) -> str:
    return f"Reminder: {event.title}"


def build_reminder_context(event: Event, app_name: str) -> Dict[str, Any]:
    return {
        "event": event,
        "start_human": _human(event.start, event.all_day),
        "end_human": _human(event.end, event.all_day),
        "app_name": app_name,
    }


def render_reminder_html(context: Dict[str, Any]) -> str:
    template = _env.get_template("reminder.html")
    return template.render(context)


def render_reminder_plaintext(context: Dict[str, Any]) -> str:
    """Plaintext alternative for mail clients that do not render HTML."""
    event = context["event"]
    lines: List[str] = ["Event Reminder", "=" * 30, "", event.title]
    if event.description:
        lines.append(f"Description: {event.description}")
    lines.append(f"Start: {context['start_human']}")
    lines.append(f"End: {context['end_human']}")
    if event.location:
        lines.append(f"Location: {event.location}")
    lines.append(f"Category: {event.category}")
    lines.append("")
    lines.append(f"This is an automated reminder from {context['app_name']}.")
    return "\n".join(lines)
