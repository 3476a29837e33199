import functools
import logging
from html import escape
from typing import List

from fastapi import APIRouter, Depends, File, Form, UploadFile, status
from fastapi.responses import FileResponse
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.api.pages import already_responded_page, error_page, message_page, paragraph, render_page
from onboarding.core.config import WorkflowConfig
from onboarding.core.datetime_utils import format_long_date
from onboarding.core.errors import AlreadyResponded, NotFound, ValidationFailed, WorkflowError
from onboarding.core.stage_machine import DECISION_ACCEPT, Responded, normalize_decision, response_stage_state
from onboarding.services import public_responses
from onboarding.services.public_links import build_public_path, offer_links
from onboarding.services.storage import AttachmentStore

logger = logging.getLogger("onboarding.public")

router = APIRouter(tags=["public"])

GENERIC_FAILURE = "We could not complete your request. Please try again later or contact the hiring team."
LETTER_UNAVAILABLE = "The offer letter is currently unavailable. Please contact the hiring team."


def public_page(event: str):
    """Render candidate-facing HTML for workflow errors instead of JSON payloads."""

    def decorator(func):
        @functools.wraps(func)
        async def wrapper(*args, **kwargs):
            try:
                return await func(*args, **kwargs)
            except AlreadyResponded as exc:
                return already_responded_page(exc.decision, exc.responded_at)
            except WorkflowError as exc:
                if exc.status_code >= 500:
                    logger.error(event, extra={"error": exc.message})
                    return error_page(GENERIC_FAILURE, status_code=exc.status_code)
                return error_page(exc.message, status_code=exc.status_code)
            except Exception:
                logger.exception(event)
                return error_page(GENERIC_FAILURE, status_code=status.HTTP_500_INTERNAL_SERVER_ERROR)

        return wrapper

    return decorator


@router.get("/respond/{token}/{decision}")
@public_page("public_shortlist_response_failed")
async def respond_to_shortlist(
    token: str,
    decision: str,
    session: AsyncSession = Depends(deps.get_db_session),
):
    application = await public_responses.respond_shortlist(session, token, decision)
    if normalize_decision(decision) == DECISION_ACCEPT:
        return message_page(
            "Thank you for confirming",
            f"Thanks {application.applicant_name}! We will email you shortly with the documents we need.",
        )
    return message_page(
        "Response recorded",
        "Thank you for letting us know. We have withdrawn your application and wish you the best.",
    )


@router.get("/documents/{token}")
@public_page("public_document_page_failed")
async def view_document_upload_page(
    token: str,
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
):
    application = await public_responses.load_document_request(session, token)
    action = escape(build_public_path(config, f"/documents/{token}"))
    parts = [
        paragraph(f"Hi {application.applicant_name}, please upload your documents for {application.job_title or 'your application'}."),
        paragraph(
            f"Up to {config.candidate_doc_max_files} files, PDF, JPG or PNG, "
            f"{config.candidate_doc_max_bytes // (1024 * 1024)} MB each.",
            css_class="muted",
        ),
    ]
    if application.document_request_completed_at:
        parts.append(
            paragraph(
                f"You already submitted documents on {format_long_date(application.document_request_completed_at)}. "
                "Uploading again adds to your earlier submission.",
                css_class="muted",
            )
        )
    parts.append(
        f'<form method="post" action="{action}" enctype="multipart/form-data">'
        '<label for="files">Documents</label>'
        '<input id="files" type="file" name="files" multiple accept=".pdf,.jpg,.jpeg,.png" />'
        '<div class="actions" style="margin-top: 16px;"><button class="accept" type="submit">Upload</button></div>'
        "</form>"
    )
    return render_page("Upload your documents", "".join(parts))


@router.post("/documents/{token}")
@public_page("public_document_submit_failed")
async def submit_documents(
    token: str,
    files: List[UploadFile] = File(default=[]),
    labels: List[str] = Form(default=[]),
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
    store: AttachmentStore = Depends(deps.get_attachment_store),
):
    count = await public_responses.submit_documents(session, token, files, store=store, config=config, labels=labels)
    if count == 0:
        return message_page("No files received", "No files were selected. Please choose at least one document.")
    return message_page(
        "Documents received",
        f"Thank you! We received {count} document(s). The hiring team will be in touch soon.",
    )


async def _letter_response(session: AsyncSession, token: str, store: AttachmentStore, *, download: bool):
    try:
        letter = await public_responses.offer_letter_file(session, token, store=store)
    except (NotFound, ValidationFailed) as exc:
        logger.warning("offer_letter_unavailable", extra={"error": exc.message})
        return message_page("Offer letter unavailable", LETTER_UNAVAILABLE, status_code=status.HTTP_404_NOT_FOUND)
    disposition = "attachment" if download else "inline"
    return FileResponse(
        letter.path,
        media_type=letter.media_type,
        filename=letter.filename,
        content_disposition_type=disposition,
    )


@router.get("/offer-letter/{token}")
@public_page("public_offer_letter_failed")
async def view_offer_letter(
    token: str,
    session: AsyncSession = Depends(deps.get_db_session),
    store: AttachmentStore = Depends(deps.get_attachment_store),
):
    return await _letter_response(session, token, store, download=False)


@router.get("/offer-letter/{token}/download")
@public_page("public_offer_letter_failed")
async def download_offer_letter(
    token: str,
    session: AsyncSession = Depends(deps.get_db_session),
    store: AttachmentStore = Depends(deps.get_attachment_store),
):
    return await _letter_response(session, token, store, download=True)


@router.get("/offer/{token}")
@public_page("public_offer_page_failed")
async def view_offer(
    token: str,
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
):
    application, job = await public_responses.load_offer(session, token)
    state = response_stage_state(
        application.offer_token,
        application.offer_sent_at,
        application.offer_response_status,
        application.offer_responded_at,
    )
    if isinstance(state, Responded):
        return already_responded_page(state.decision, state.at)

    links = offer_links(config, token)
    role = (job.title if job else None) or application.job_title or "the role"
    start = format_long_date(application.offer_start_date) if application.offer_start_date else "to be confirmed"
    parts = [
        paragraph(f"Hi {application.applicant_name}, congratulations on your offer for {role}."),
        paragraph(f"Start date: {start}"),
    ]
    if application.offer_letter_path:
        parts.append(
            f'<p><a href="{escape(links["letter_url"])}">View offer letter</a> | '
            f'<a href="{escape(links["download_url"])}">Download</a></p>'
        )
    parts.append(
        '<div class="actions">'
        f'<a class="accept" href="{escape(links["accept_url"])}">Accept offer</a>'
        f'<a class="decline" href="{escape(links["decline_url"])}">Decline offer</a>'
        "</div>"
    )
    return render_page("Your offer", "".join(parts))


@router.get("/offer/{token}/{decision}")
@public_page("public_offer_response_failed")
async def respond_to_offer(
    token: str,
    decision: str,
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
):
    application = await public_responses.respond_offer(session, token, decision, config=config)
    if normalize_decision(decision) == DECISION_ACCEPT:
        return message_page(
            "Welcome aboard!",
            f"Thank you {application.applicant_name}, your acceptance has been recorded. "
            "Use the account details from your offer email to sign in.",
        )
    return message_page("Response recorded", "Thank you for letting us know. We have recorded that you declined the offer.")
