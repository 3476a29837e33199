from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path

import anyio
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import WorkflowConfig
from onboarding.core.datetime_utils import utcnow
from onboarding.core.errors import (
    InternalFailure,
    NotFound,
    PreconditionFailed,
    TransportUnavailable,
    ValidationFailed,
    WorkflowError,
)
from onboarding.core.stage_machine import (
    OFFERED,
    ONBOARDING_DOCUMENTS_REQUESTED,
    ONBOARDING_OFFER_SENT,
    ONBOARDING_SHORTLISTED,
    RESPONSE_ACCEPTED,
    RESPONSE_PENDING,
    SHORTLISTED,
    TEMPLATE_DOCUMENT_REQUEST,
    TEMPLATE_OFFER,
    TEMPLATE_SHORTLIST,
    Completed,
    Responded,
    document_stage_state,
    normalize_template,
    response_stage_state,
    status_after_document_request,
)
from onboarding.models.application import RecApplication
from onboarding.models.email_log import RecApplicationEmailLog
from onboarding.schemas.user import UserContext
from onboarding.services import offer_letter
from onboarding.services.accounts import ensure_candidate_account
from onboarding.services.email import (
    EmailAttachment,
    EmailSendError,
    Mailer,
    OutboundEmail,
    html_to_text,
    render_template,
    text_to_html,
)
from onboarding.services.public_links import document_upload_link, offer_links, shortlist_links
from onboarding.services.storage import AttachmentStore
from onboarding.services.timeline import append_email_log, append_timeline
from onboarding.services.tokens import mint_token

logger = logging.getLogger("onboarding.workflow")


@dataclass
class DispatchResult:
    application: RecApplication
    email_log: RecApplicationEmailLog


@dataclass
class BatchItemResult:
    application_id: str
    status: str
    reason: str | None = None


@dataclass
class BatchResult:
    template: str
    results: list[BatchItemResult] = field(default_factory=list)

    @property
    def sent(self) -> int:
        return sum(1 for item in self.results if item.status == "sent")

    @property
    def failed(self) -> int:
        return sum(1 for item in self.results if item.status == "failed")


@dataclass
class _OfferLetter:
    path: Path
    relative_path: str
    filename: str
    format: str
    size: int


def parse_application_id(raw: int | str | None) -> int:
    if isinstance(raw, bool):
        raise ValidationFailed("Invalid application ID.")
    if isinstance(raw, int):
        value = raw
    else:
        text = str(raw or "").strip()
        if not text.isdigit():
            raise ValidationFailed("Invalid application ID.")
        value = int(text)
    if value <= 0:
        raise ValidationFailed("Invalid application ID.")
    return value


def check_preconditions(application: RecApplication, template: str) -> None:
    """Raise PreconditionFailed when ``application`` is not ready for ``template``."""
    if template == TEMPLATE_SHORTLIST:
        if not (application.email or "").strip():
            raise PreconditionFailed("Application does not have an email address.")
        return

    if template == TEMPLATE_DOCUMENT_REQUEST:
        shortlist = response_stage_state(
            application.shortlist_token,
            application.shortlist_sent_at,
            application.shortlist_response_status,
            application.shortlist_responded_at,
        )
        if not (isinstance(shortlist, Responded) and shortlist.decision == RESPONSE_ACCEPTED):
            raise PreconditionFailed("Candidate must accept the shortlist before documents can be requested.")
        return

    if template == TEMPLATE_OFFER:
        documents = document_stage_state(
            application.document_request_token,
            application.document_request_sent_at,
            application.document_request_completed_at,
        )
        if not isinstance(documents, Completed):
            raise PreconditionFailed("Candidate must submit documents before an offer can be sent.")
        offer = response_stage_state(
            application.offer_token,
            application.offer_sent_at,
            application.offer_response_status,
            application.offer_responded_at,
        )
        if isinstance(offer, Responded) and offer.decision == RESPONSE_ACCEPTED:
            raise PreconditionFailed("Candidate has already accepted the offer.")
        return

    raise ValidationFailed("Unsupported template.")


def _note_html(note: str | None) -> str:
    if not note or not note.strip():
        return ""
    return f"<p>{text_to_html(note.strip())}</p>"


def _timeline_note(default: str, note: str | None) -> str:
    if note and note.strip():
        return f"{default}: {note.strip()}"
    return default


class WorkflowDispatcher:
    """
    Validates stage preconditions, advances the application, and sends the templated email.

    Mutations are flushed before the send and committed after it; a failed send rolls the
    whole dispatch back so no stage is left advanced without its email.
    """

    def __init__(self, *, config: WorkflowConfig, mailer: Mailer | None, store: AttachmentStore | None = None) -> None:
        self.config = config
        self.mailer = mailer
        self.store = store or AttachmentStore(config.upload_root)

    def _require_mailer(self) -> Mailer:
        if self.mailer is None:
            raise TransportUnavailable()
        return self.mailer

    async def dispatch(
        self,
        session: AsyncSession,
        application_id: int | str,
        template: str,
        *,
        actor: UserContext,
        note: str | None = None,
        offer_letter_path: str | None = None,
        auto_generate_offer: bool = True,
    ) -> DispatchResult:
        code = normalize_template(template)
        if code is None:
            raise ValidationFailed("Unsupported template.")
        app_id = parse_application_id(application_id)
        mailer = self._require_mailer()

        application = await session.get(RecApplication, app_id)
        if not application:
            raise NotFound("Application not found.")
        check_preconditions(application, code)

        letter: _OfferLetter | None = None
        if code == TEMPLATE_OFFER:
            letter = await self._resolve_offer_letter(
                session, application, offer_letter_path=offer_letter_path, auto_generate=auto_generate_offer
            )

        actor_email = str(actor.email)
        try:
            if code == TEMPLATE_SHORTLIST:
                message = await self._apply_shortlist(session, application, actor_email=actor_email, note=note)
            elif code == TEMPLATE_DOCUMENT_REQUEST:
                message = await self._apply_document_request(session, application, actor_email=actor_email, note=note)
            else:
                message = await self._apply_offer(session, application, letter, actor_email=actor_email, note=note)

            application.processed_by_email = actor_email
            email_log = await append_email_log(
                session,
                application,
                subject=message.subject,
                body=message.text,
                recipient=message.to,
                sent_by_email=actor_email,
            )
            await mailer.send(message)
        except EmailSendError as exc:
            await session.rollback()
            logger.warning(
                "workflow_email_failed",
                extra={"application_id": app_id, "template": code, "error": str(exc)},
            )
            raise InternalFailure("Failed to send email.") from exc
        except Exception:
            await session.rollback()
            raise

        await session.commit()
        await session.refresh(application)
        logger.info(
            "workflow_email_sent",
            extra={"application_id": app_id, "template": code, "actor": actor_email},
        )
        return DispatchResult(application=application, email_log=email_log)

    async def dispatch_batch(
        self,
        session: AsyncSession,
        application_ids: list[int | str],
        template: str,
        *,
        actor: UserContext,
        note: str | None = None,
        offer_letter_path: str | None = None,
        auto_generate_offer: bool = True,
    ) -> BatchResult:
        code = normalize_template(template)
        if code is None:
            raise ValidationFailed("Unsupported template.")
        if not application_ids:
            raise ValidationFailed("At least one application ID is required.")
        if len(application_ids) > self.config.batch_max_size:
            raise ValidationFailed(f"A batch can include at most {self.config.batch_max_size} applications.")
        if code == TEMPLATE_OFFER and offer_letter_path:
            raise ValidationFailed("Batch offer emails use auto-generated letters only.")
        self._require_mailer()

        outcome = BatchResult(template=code)
        seen: set[str] = set()
        for raw in application_ids:
            try:
                key = str(parse_application_id(raw))
            except ValidationFailed:
                key = str(raw).strip()
            if key in seen:
                outcome.results.append(BatchItemResult(application_id=key, status="failed", reason="Duplicate application ID."))
                continue
            seen.add(key)
            try:
                await self.dispatch(
                    session,
                    key,
                    code,
                    actor=actor,
                    note=note,
                    auto_generate_offer=True if code == TEMPLATE_OFFER else auto_generate_offer,
                )
            except WorkflowError as exc:
                outcome.results.append(BatchItemResult(application_id=key, status="failed", reason=exc.message))
                continue
            except Exception:
                logger.exception("workflow_batch_item_failed", extra={"application_id": key, "template": code})
                await session.rollback()
                outcome.results.append(BatchItemResult(application_id=key, status="failed", reason="Unexpected error."))
                continue
            outcome.results.append(BatchItemResult(application_id=key, status="sent"))

        logger.info(
            "workflow_batch_completed",
            extra={"template": code, "sent": outcome.sent, "failed": outcome.failed, "total": len(outcome.results)},
        )
        return outcome

    async def send_direct_email(
        self,
        session: AsyncSession,
        application_id: int | str,
        *,
        subject: str,
        message: str,
        actor: UserContext,
    ) -> DispatchResult:
        subject = (subject or "").strip()
        body = (message or "").strip()
        if not subject or not body:
            raise ValidationFailed("Subject and message are required.")
        app_id = parse_application_id(application_id)
        mailer = self._require_mailer()

        application = await session.get(RecApplication, app_id)
        if not application:
            raise NotFound("Application not found.")
        if not (application.email or "").strip():
            raise PreconditionFailed("Application does not have an email address.")

        html = render_template(
            "direct_message",
            {
                "applicant_name": application.applicant_name,
                "message_html": text_to_html(body),
                "organization_name": self.config.organization_name,
            },
        )
        outbound = OutboundEmail(to=application.email, subject=subject, html=html, text=html_to_text(html))
        actor_email = str(actor.email)
        try:
            email_log = await append_email_log(
                session, application, subject=subject, body=outbound.text, recipient=outbound.to, sent_by_email=actor_email
            )
            await append_timeline(
                session, application, status=application.status, note=f"Email sent: {subject}", changed_by_email=actor_email
            )
            application.processed_by_email = actor_email
            await mailer.send(outbound)
        except EmailSendError as exc:
            await session.rollback()
            logger.warning("direct_email_failed", extra={"application_id": app_id, "error": str(exc)})
            raise InternalFailure("Failed to send email.") from exc
        except Exception:
            await session.rollback()
            raise

        await session.commit()
        await session.refresh(application)
        logger.info("direct_email_sent", extra={"application_id": app_id, "actor": actor_email})
        return DispatchResult(application=application, email_log=email_log)

    async def _apply_shortlist(
        self, session: AsyncSession, application: RecApplication, *, actor_email: str, note: str | None
    ) -> OutboundEmail:
        now = utcnow()
        token = mint_token()
        application.shortlist_token = token
        application.shortlist_sent_at = now
        application.shortlist_response_status = RESPONSE_PENDING
        application.shortlist_responded_at = None
        application.shortlist_candidate_message = None
        application.onboarding_status = ONBOARDING_SHORTLISTED
        application.status = SHORTLISTED
        await append_timeline(
            session,
            application,
            status=SHORTLISTED,
            note=_timeline_note("Shortlist invitation sent", note),
            changed_by_email=actor_email,
        )

        context = {
            **self._base_context(application),
            **shortlist_links(self.config, token),
            "note_html": _note_html(note),
        }
        html = render_template("shortlist_invite", context)
        return OutboundEmail(
            to=application.email,
            subject=f"You have been shortlisted for {context['job_title']}",
            html=html,
            text=html_to_text(html),
        )

    async def _apply_document_request(
        self, session: AsyncSession, application: RecApplication, *, actor_email: str, note: str | None
    ) -> OutboundEmail:
        now = utcnow()
        token = mint_token()
        application.document_request_token = token
        application.document_request_sent_at = now
        application.document_request_completed_at = None
        application.onboarding_status = ONBOARDING_DOCUMENTS_REQUESTED
        application.status = status_after_document_request(application.status)
        await append_timeline(
            session,
            application,
            status=application.status,
            note=_timeline_note("Document request sent", note),
            changed_by_email=actor_email,
        )

        context = {
            **self._base_context(application),
            "upload_url": document_upload_link(self.config, token),
            "max_files": self.config.candidate_doc_max_files,
            "max_mb": self.config.candidate_doc_max_bytes // (1024 * 1024),
            "note_html": _note_html(note),
        }
        html = render_template("document_request", context)
        return OutboundEmail(
            to=application.email,
            subject=f"Documents requested for {context['job_title']}",
            html=html,
            text=html_to_text(html),
        )

    async def _apply_offer(
        self,
        session: AsyncSession,
        application: RecApplication,
        letter: _OfferLetter | None,
        *,
        actor_email: str,
        note: str | None,
    ) -> OutboundEmail:
        if letter is None:
            raise PreconditionFailed("No offer letter available.")
        provisioned = await ensure_candidate_account(session, application, config=self.config, reset_password=True)

        now = utcnow()
        token = mint_token()
        application.offer_token = token
        application.offer_sent_at = now
        application.offer_response_status = RESPONSE_PENDING
        application.offer_responded_at = None
        application.offer_candidate_message = None
        application.offer_letter_filename = letter.filename
        application.offer_letter_path = letter.relative_path
        application.offer_letter_format = letter.format
        application.offer_letter_size = letter.size
        application.onboarding_status = ONBOARDING_OFFER_SENT
        application.status = OFFERED
        await append_timeline(
            session,
            application,
            status=OFFERED,
            note=_timeline_note("Offer letter sent", note),
            changed_by_email=actor_email,
        )

        context = {
            **self._base_context(application),
            **offer_links(self.config, token),
            "login_email": provisioned.account.email if provisioned else application.email,
            "login_password": (provisioned.password if provisioned else None) or "",
            "note_html": _note_html(note),
        }
        html = render_template("offer_sent", context)
        content = await self.store.read(letter.relative_path)
        content_type = mimetypes.guess_type(letter.filename)[0] or "application/octet-stream"
        return OutboundEmail(
            to=application.email,
            subject=f"Offer letter for {context['job_title']}",
            html=html,
            text=html_to_text(html),
            attachments=[EmailAttachment(filename=letter.filename, content=content, content_type=content_type)],
        )

    async def _resolve_offer_letter(
        self,
        session: AsyncSession,
        application: RecApplication,
        *,
        offer_letter_path: str | None,
        auto_generate: bool,
    ) -> _OfferLetter:
        if offer_letter_path and offer_letter_path.strip():
            path = await self.store.resolve_existing(offer_letter_path)
            relative = path.relative_to(self.store.root.resolve()).as_posix()
            return _OfferLetter(
                path=path,
                relative_path=relative,
                filename=path.name,
                format=path.suffix.lstrip(".").lower() or "bin",
                size=(await anyio.Path(path).stat()).st_size,
            )
        if auto_generate:
            generated = await offer_letter.generate_and_store(
                session, application, store=self.store, config=self.config, fmt="pdf"
            )
            return _OfferLetter(
                path=self.store.resolve(generated.stored.relative_path),
                relative_path=generated.stored.relative_path,
                filename=generated.stored.filename,
                format=generated.format,
                size=generated.stored.size,
            )
        raise PreconditionFailed("No offer letter available.")

    def _base_context(self, application: RecApplication) -> dict[str, object]:
        return {
            "applicant_name": application.applicant_name,
            "job_title": application.job_title or "the role",
            "organization_name": self.config.organization_name,
        }
