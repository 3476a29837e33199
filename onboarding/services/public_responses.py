from __future__ import annotations

import logging
import mimetypes
from dataclasses import dataclass
from pathlib import Path

from fastapi import UploadFile
from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import WorkflowConfig
from onboarding.core.datetime_utils import add_months, utcnow
from onboarding.core.errors import AlreadyResponded, NotFound, ValidationFailed
from onboarding.core.stage_machine import (
    DECISION_ACCEPT,
    HIRED,
    IN_REVIEW,
    ONBOARDING_DECLINED,
    ONBOARDING_DOCUMENTS_REQUESTED,
    ONBOARDING_HIRED,
    REJECTED,
    RESPONSE_PENDING,
    STAGE_DOCUMENTS,
    STAGE_OFFER,
    STAGE_SHORTLIST,
    Responded,
    normalize_decision,
    response_for_decision,
    response_stage_state,
)
from onboarding.core.uploads import CANDIDATE_DOCUMENTS, read_upload
from onboarding.models.application import RecApplication
from onboarding.models.document import RecApplicationDocument
from onboarding.models.job import RecJob
from onboarding.services.accounts import ensure_candidate_account
from onboarding.services.storage import CANDIDATE_DOCS_DIR, AttachmentStore
from onboarding.services.timeline import append_timeline
from onboarding.services.tokens import resolve_application_by_token

logger = logging.getLogger("onboarding.public")

INVALID_LINK_MESSAGE = "This link is invalid or has expired."


@dataclass
class OfferLetterFile:
    path: Path
    filename: str
    media_type: str


def _parse_decision(raw: str) -> str:
    decision = normalize_decision(raw)
    if decision is None:
        raise ValidationFailed("Unsupported response.")
    return decision


async def _resolve(session: AsyncSession, stage: str, token: str) -> RecApplication:
    application = await resolve_application_by_token(session, stage, token)
    if not application:
        raise NotFound(INVALID_LINK_MESSAGE)
    return application


def _shortlist_state(application: RecApplication):
    return response_stage_state(
        application.shortlist_token,
        application.shortlist_sent_at,
        application.shortlist_response_status,
        application.shortlist_responded_at,
    )


def _offer_state(application: RecApplication):
    return response_stage_state(
        application.offer_token,
        application.offer_sent_at,
        application.offer_response_status,
        application.offer_responded_at,
    )


async def _reject_if_responded(session: AsyncSession, application: RecApplication, state_of) -> None:
    await session.refresh(application)
    state = state_of(application)
    if isinstance(state, Responded):
        raise AlreadyResponded(decision=state.decision, responded_at=state.at)


async def respond_shortlist(
    session: AsyncSession, token: str, decision: str, *, message: str | None = None
) -> RecApplication:
    choice = _parse_decision(decision)
    application = await _resolve(session, STAGE_SHORTLIST, token)
    state = _shortlist_state(application)
    if isinstance(state, Responded):
        raise AlreadyResponded(decision=state.decision, responded_at=state.at)

    now = utcnow()
    accepted = choice == DECISION_ACCEPT
    new_status = IN_REVIEW if accepted else REJECTED
    new_onboarding = ONBOARDING_DOCUMENTS_REQUESTED if accepted else ONBOARDING_DECLINED
    # Only the first response flips the row out of "pending".
    result = await session.execute(
        update(RecApplication)
        .where(
            RecApplication.application_id == application.application_id,
            RecApplication.shortlist_token == token,
            RecApplication.shortlist_response_status == RESPONSE_PENDING,
        )
        .values(
            shortlist_response_status=response_for_decision(choice),
            shortlist_responded_at=now,
            shortlist_candidate_message=message,
            status=new_status,
            onboarding_status=new_onboarding,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        await _reject_if_responded(session, application, _shortlist_state)
        raise NotFound(INVALID_LINK_MESSAGE)

    await append_timeline(
        session,
        application,
        status=new_status,
        note="Candidate accepted the shortlist invitation" if accepted else "Candidate declined the shortlist invitation",
        changed_by_email=application.email,
    )
    await session.commit()
    await session.refresh(application)
    logger.info(
        "shortlist_response_recorded",
        extra={"application_id": application.application_id, "decision": choice},
    )
    return application


async def load_document_request(session: AsyncSession, token: str) -> RecApplication:
    return await _resolve(session, STAGE_DOCUMENTS, token)


async def submit_documents(
    session: AsyncSession,
    token: str,
    files: list[UploadFile],
    *,
    store: AttachmentStore,
    config: WorkflowConfig,
    labels: list[str] | None = None,
) -> int:
    """Store the candidate's files and mark the document stage complete. Returns the file count."""
    application = await _resolve(session, STAGE_DOCUMENTS, token)
    uploads = [upload for upload in files if upload is not None and (upload.filename or "").strip()]
    if not uploads:
        return 0
    if len(uploads) > config.candidate_doc_max_files:
        raise ValidationFailed(f"You can upload at most {config.candidate_doc_max_files} files.")

    prepared = [
        await read_upload(upload, CANDIDATE_DOCUMENTS, max_bytes=config.candidate_doc_max_bytes) for upload in uploads
    ]

    now = utcnow()
    labels = labels or []
    for index, (filename, data) in enumerate(prepared):
        stored = await store.save(CANDIDATE_DOCS_DIR, filename, data)
        label = labels[index].strip() if index < len(labels) and labels[index] else None
        session.add(
            RecApplicationDocument(
                application_id=application.application_id,
                filename=filename,
                label=label,
                url=stored.relative_path,
                uploaded_by_candidate=True,
                uploaded_at=now,
            )
        )

    application.document_request_completed_at = now
    application.onboarding_status = ONBOARDING_DOCUMENTS_REQUESTED
    await append_timeline(
        session,
        application,
        status=application.status,
        note=f"Candidate uploaded {len(prepared)} document(s)",
        changed_by_email=application.email,
    )
    await session.commit()
    logger.info(
        "documents_submitted",
        extra={"application_id": application.application_id, "count": len(prepared)},
    )
    return len(prepared)


async def load_offer(session: AsyncSession, token: str) -> tuple[RecApplication, RecJob | None]:
    application = await _resolve(session, STAGE_OFFER, token)
    job = await session.get(RecJob, application.job_id) if application.job_id else None
    return application, job


async def offer_letter_file(session: AsyncSession, token: str, *, store: AttachmentStore) -> OfferLetterFile:
    application = await _resolve(session, STAGE_OFFER, token)
    if not application.offer_letter_path:
        raise NotFound("Offer letter unavailable.")
    path = await store.resolve_existing(application.offer_letter_path)
    filename = application.offer_letter_filename or path.name
    media_type = mimetypes.guess_type(filename)[0] or "application/octet-stream"
    return OfferLetterFile(path=path, filename=filename, media_type=media_type)


async def respond_offer(
    session: AsyncSession,
    token: str,
    decision: str,
    *,
    config: WorkflowConfig,
    message: str | None = None,
) -> RecApplication:
    choice = _parse_decision(decision)
    application = await _resolve(session, STAGE_OFFER, token)
    state = _offer_state(application)
    if isinstance(state, Responded):
        raise AlreadyResponded(decision=state.decision, responded_at=state.at)

    now = utcnow()
    accepted = choice == DECISION_ACCEPT
    new_status = HIRED if accepted else REJECTED
    new_onboarding = ONBOARDING_HIRED if accepted else ONBOARDING_DECLINED
    result = await session.execute(
        update(RecApplication)
        .where(
            RecApplication.application_id == application.application_id,
            RecApplication.offer_token == token,
            RecApplication.offer_response_status == RESPONSE_PENDING,
        )
        .values(
            offer_response_status=response_for_decision(choice),
            offer_responded_at=now,
            offer_candidate_message=message,
            status=new_status,
            onboarding_status=new_onboarding,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await session.rollback()
        await _reject_if_responded(session, application, _offer_state)
        raise NotFound(INVALID_LINK_MESSAGE)

    await session.refresh(application)
    if accepted:
        await ensure_candidate_account(session, application, config=config, reset_password=False)
        if application.offer_start_date is None:
            application.offer_start_date = now
        if application.offer_end_date is None:
            application.offer_end_date = add_months(now, config.default_offer_months)

    await append_timeline(
        session,
        application,
        status=new_status,
        note="Candidate accepted the offer" if accepted else "Candidate declined the offer",
        changed_by_email=application.email,
    )
    await session.commit()
    await session.refresh(application)
    logger.info(
        "offer_response_recorded",
        extra={"application_id": application.application_id, "decision": choice},
    )
    return application
