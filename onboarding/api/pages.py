from __future__ import annotations

from datetime import datetime
from html import escape

from fastapi import status
from fastapi.responses import HTMLResponse

from onboarding.core.datetime_utils import format_long_date
from onboarding.core.paths import TEMPLATES_DIR
from onboarding.core.stage_machine import RESPONSE_ACCEPTED


def render_page(heading: str, body_html: str, *, status_code: int = status.HTTP_200_OK, title: str | None = None) -> HTMLResponse:
    raw = (TEMPLATES_DIR / "page.html").read_text(encoding="utf-8")
    html = raw.format_map({"title": escape(title or heading), "heading": escape(heading), "body": body_html})
    return HTMLResponse(content=html, status_code=status_code)


def paragraph(text: str, *, css_class: str | None = None) -> str:
    attr = f' class="{css_class}"' if css_class else ""
    return f"<p{attr}>{escape(text)}</p>"


def message_page(heading: str, message: str, *, status_code: int = status.HTTP_200_OK) -> HTMLResponse:
    return render_page(heading, paragraph(message), status_code=status_code)


def already_responded_page(decision: str | None, responded_at: datetime | None) -> HTMLResponse:
    verb = "accepted" if decision == RESPONSE_ACCEPTED else "declined"
    when = f" on {format_long_date(responded_at)}" if responded_at else ""
    return message_page("Response already recorded", f"You already {verb}{when}. No further action is needed.")


def error_page(message: str, *, status_code: int) -> HTMLResponse:
    return message_page("Something went wrong", message, status_code=status_code)
