from __future__ import annotations

import base64
import html as html_lib
import logging
import re
from dataclasses import dataclass, field
from email import encoders
from email.mime.base import MIMEBase
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Protocol

import anyio
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from onboarding.core.config import Settings
from onboarding.core.paths import TEMPLATES_DIR, resolve_repo_path

logger = logging.getLogger("onboarding.email")

GMAIL_SCOPES = ["https://www.googleapis.com/auth/gmail.send"]


class EmailSendError(RuntimeError):
    pass


@dataclass(frozen=True)
class EmailAttachment:
    filename: str
    content: bytes
    content_type: str = "application/octet-stream"


@dataclass
class OutboundEmail:
    to: str
    subject: str
    html: str
    text: str
    attachments: list[EmailAttachment] = field(default_factory=list)


class Mailer(Protocol):
    async def send(self, message: OutboundEmail) -> None: ...


def _template_value(key: str, value: Any) -> str:
    if value is None:
        return ""
    # Keys ending in "_html" hold markup the caller already escaped.
    if key.endswith("_html"):
        return str(value)
    return html_lib.escape(str(value))


def render_template(name: str, context: dict[str, Any]) -> str:
    raw = (TEMPLATES_DIR / "email" / f"{name}.html").read_text(encoding="utf-8")
    return raw.format_map({key: _template_value(key, value) for key, value in context.items()})


_TAG_RE = re.compile(r"<[^>]+>")
_BLOCK_RE = re.compile(r"</?(p|div|br|li|tr|h[1-6])[^>]*>", re.IGNORECASE)
_STYLE_RE = re.compile(r"<(style|title)[^>]*>.*?</\1>", re.IGNORECASE | re.DOTALL)


def html_to_text(html: str) -> str:
    text = _STYLE_RE.sub("", html)
    text = _BLOCK_RE.sub("\n", text)
    text = _TAG_RE.sub("", text)
    text = html_lib.unescape(text)
    lines = [" ".join(line.split()) for line in text.splitlines()]
    return "\n".join(line for line in lines if line).strip()


def text_to_html(text: str) -> str:
    return "<br />".join(html_lib.escape(line) for line in (text or "").splitlines())


def build_mime_message(message: OutboundEmail, *, sender_email: str, sender_name: str) -> MIMEMultipart:
    msg = MIMEMultipart("mixed")
    body = MIMEMultipart("alternative")
    body.attach(MIMEText(message.text, "plain", "utf-8"))
    body.attach(MIMEText(message.html, "html", "utf-8"))
    msg.attach(body)
    for attachment in message.attachments:
        maintype, _, subtype = attachment.content_type.partition("/")
        part = MIMEBase(maintype or "application", subtype or "octet-stream")
        part.set_payload(attachment.content)
        encoders.encode_base64(part)
        part.add_header("Content-Disposition", "attachment", filename=attachment.filename)
        msg.attach(part)

    msg["To"] = message.to
    msg["From"] = f"{sender_name} <{sender_email}>" if sender_email else sender_name
    if sender_email:
        msg["Reply-To"] = sender_email
    msg["Subject"] = message.subject
    return msg


class GmailMailer:
    """Sends through the Gmail API with a domain-delegated service account."""

    def __init__(self, *, credentials_path: str, sender_email: str, sender_name: str) -> None:
        self.credentials_path = credentials_path
        self.sender_email = sender_email
        self.sender_name = sender_name

    def _client(self):
        if not self.credentials_path:
            raise EmailSendError("Missing service account credentials for Gmail.")
        credentials = Credentials.from_service_account_file(
            str(resolve_repo_path(self.credentials_path)), scopes=GMAIL_SCOPES
        )
        credentials = credentials.with_subject(self.sender_email)
        return build("gmail", "v1", credentials=credentials, cache_discovery=False)

    def _send_sync(self, message: OutboundEmail) -> None:
        msg = build_mime_message(message, sender_email=self.sender_email, sender_name=self.sender_name)
        raw = base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")
        try:
            service = self._client()
            service.users().messages().send(userId=self.sender_email, body={"raw": raw}).execute()
        except EmailSendError:
            raise
        except Exception as exc:  # noqa: BLE001
            raise EmailSendError(str(exc)) from exc

    async def send(self, message: OutboundEmail) -> None:
        await anyio.to_thread.run_sync(self._send_sync, message)


class LogMailer:
    """Development transport: records the message in the log instead of sending it."""

    def __init__(self, *, sender_email: str = "", sender_name: str = "") -> None:
        self.sender_email = sender_email
        self.sender_name = sender_name

    async def send(self, message: OutboundEmail) -> None:
        logger.info(
            "email_logged",
            extra={
                "to": message.to,
                "subject": message.subject,
                "attachments": [a.filename for a in message.attachments],
            },
        )
        logger.debug("email_body\n%s", message.text)


def build_mailer(source: Settings) -> Mailer | None:
    """Returns None when email is disabled; callers treat that as transport unavailable."""
    if source.mail_backend == "gmail":
        if not source.mail_sender_email:
            logger.warning("gmail backend selected without a sender email; email disabled")
            return None
        return GmailMailer(
            credentials_path=source.google_application_credentials,
            sender_email=source.mail_sender_email,
            sender_name=source.mail_sender_name,
        )
    if source.mail_backend == "log":
        return LogMailer(sender_email=source.mail_sender_email, sender_name=source.mail_sender_name)
    return None
