import logging

from onboarding.core.config import Settings
from onboarding.services.email import (
    EmailAttachment,
    GmailMailer,
    LogMailer,
    OutboundEmail,
    build_mailer,
    build_mime_message,
    html_to_text,
    render_template,
)


def test_html_to_text_keeps_readable_lines():
    html = "<div><p>Hi Jane,</p><p>Click <a href='x'>here</a> &amp; confirm.</p><br/>Thanks</div>"
    assert html_to_text(html) == "Hi Jane,\nClick here & confirm.\nThanks"


def test_render_template_escapes_plain_values_but_keeps_html_fragments():
    html = render_template(
        "shortlist_invite",
        {
            "applicant_name": '<link rel="attachment" href="file:///etc/passwd">',
            "job_title": "Designer & Illustrator",
            "organization_name": "Acme Labs",
            "accept_url": "https://careers.acme.io/respond/t/accept",
            "decline_url": "https://careers.acme.io/respond/t/decline",
            "note_html": "<p><em>Portfolio reviewed</em></p>",
        },
    )

    assert "<link" not in html
    assert "Hi &lt;link rel=&quot;attachment&quot;" in html
    assert "Designer &amp; Illustrator" in html
    assert "<p><em>Portfolio reviewed</em></p>" in html


def test_render_template_fills_context():
    html = render_template(
        "shortlist_invite",
        {
            "applicant_name": "Jane",
            "job_title": "Designer",
            "organization_name": "Acme Labs",
            "accept_url": "https://careers.acme.io/respond/t/accept",
            "decline_url": "https://careers.acme.io/respond/t/decline",
            "note_html": None,
        },
    )
    assert "Hi Jane," in html
    assert "https://careers.acme.io/respond/t/accept" in html


def test_mime_message_carries_attachment():
    message = OutboundEmail(
        to="jane@mailbox.io",
        subject="Offer",
        html="<p>Hello</p>",
        text="Hello",
        attachments=[EmailAttachment(filename="offer.pdf", content=b"%PDF", content_type="application/pdf")],
    )

    mime = build_mime_message(message, sender_email="talent@acme.io", sender_name="Acme Talent")

    assert mime["To"] == "jane@mailbox.io"
    assert mime["From"] == "Acme Talent <talent@acme.io>"
    filenames = [part.get_filename() for part in mime.walk() if part.get_filename()]
    assert filenames == ["offer.pdf"]


def test_build_mailer_by_backend():
    assert build_mailer(Settings(mail_backend="disabled")) is None
    assert build_mailer(Settings(mail_backend="gmail", mail_sender_email="")) is None
    assert isinstance(build_mailer(Settings(mail_backend="log")), LogMailer)
    assert isinstance(build_mailer(Settings(mail_backend="gmail", mail_sender_email="talent@acme.io")), GmailMailer)


async def test_log_mailer_records_message(caplog):
    caplog.set_level(logging.INFO, logger="onboarding.email")

    await LogMailer().send(OutboundEmail(to="jane@mailbox.io", subject="Hello", html="<p>Hi</p>", text="Hi"))

    assert any(record.getMessage() == "email_logged" for record in caplog.records)
