from pathlib import PurePath

from fastapi import APIRouter, Depends, File, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.core.auth import require_capability
from onboarding.core.config import WorkflowConfig
from onboarding.core.roles import Capability
from onboarding.core.uploads import OFFER_LETTERS, read_upload
from onboarding.schemas.application import EmailLogOut
from onboarding.schemas.user import UserContext
from onboarding.schemas.workflow import (
    BatchItemOut,
    DirectEmailIn,
    DirectEmailOut,
    OfferLetterFileOut,
    OfferLetterGenerateIn,
    WorkflowBatchIn,
    WorkflowBatchOut,
    WorkflowEmailIn,
    WorkflowEmailOut,
)
from onboarding.services import applications as application_service
from onboarding.services import offer_letter
from onboarding.services.storage import OFFER_LETTERS_DIR, AttachmentStore
from onboarding.services.workflow import WorkflowDispatcher, parse_application_id

router = APIRouter(prefix="/applications", tags=["workflow"])


@router.post("/workflow-email/batch", response_model=WorkflowBatchOut)
async def send_workflow_email_batch(
    payload: WorkflowBatchIn,
    session: AsyncSession = Depends(deps.get_db_session),
    dispatcher: WorkflowDispatcher = Depends(deps.get_dispatcher),
    user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    outcome = await dispatcher.dispatch_batch(
        session,
        payload.application_ids,
        payload.template,
        actor=user,
        note=payload.note,
        offer_letter_path=payload.offer_letter_path,
        auto_generate_offer=payload.auto_generate_offer,
    )
    return WorkflowBatchOut(
        message=f"Processed {len(outcome.results)} application(s): {outcome.sent} sent, {outcome.failed} failed.",
        template=outcome.template,
        sent=outcome.sent,
        failed=outcome.failed,
        results=[
            BatchItemOut(application_id=item.application_id, status=item.status, reason=item.reason)
            for item in outcome.results
        ],
    )


@router.post("/{application_id}/workflow-email", response_model=WorkflowEmailOut)
async def send_workflow_email(
    application_id: str,
    payload: WorkflowEmailIn,
    session: AsyncSession = Depends(deps.get_db_session),
    dispatcher: WorkflowDispatcher = Depends(deps.get_dispatcher),
    user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    result = await dispatcher.dispatch(
        session,
        application_id,
        payload.template,
        actor=user,
        note=payload.note,
        offer_letter_path=payload.offer_letter_path,
        auto_generate_offer=payload.auto_generate_offer,
    )
    return WorkflowEmailOut(
        message="Workflow email sent successfully.",
        email=EmailLogOut.model_validate(result.email_log),
        application=await application_service.serialize_application(session, result.application),
    )


@router.post("/{application_id}/email", response_model=DirectEmailOut)
async def send_direct_email(
    application_id: str,
    payload: DirectEmailIn,
    session: AsyncSession = Depends(deps.get_db_session),
    dispatcher: WorkflowDispatcher = Depends(deps.get_dispatcher),
    user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    result = await dispatcher.send_direct_email(
        session, application_id, subject=payload.subject, message=payload.message, actor=user
    )
    return DirectEmailOut(
        message="Email sent successfully.",
        application=await application_service.serialize_application(session, result.application),
    )


@router.post("/{application_id}/offer-letter/upload", response_model=OfferLetterFileOut)
async def upload_offer_letter(
    application_id: str,
    file: UploadFile = File(...),
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
    store: AttachmentStore = Depends(deps.get_attachment_store),
    _user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    await application_service.get_application(session, parse_application_id(application_id))
    filename, data = await read_upload(file, OFFER_LETTERS, max_bytes=config.offer_letter_max_bytes)

    stored = await store.save(OFFER_LETTERS_DIR, filename, data)
    return OfferLetterFileOut(
        message="Offer letter uploaded successfully.",
        path=stored.relative_path,
        filename=stored.filename,
        size=stored.size,
        format=PurePath(filename).suffix.lstrip(".").lower() or None,
    )


@router.post("/{application_id}/offer-letter/generate", response_model=OfferLetterFileOut)
async def generate_offer_letter(
    application_id: str,
    payload: OfferLetterGenerateIn,
    session: AsyncSession = Depends(deps.get_db_session),
    config: WorkflowConfig = Depends(deps.get_workflow_config),
    store: AttachmentStore = Depends(deps.get_attachment_store),
    _user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    application = await application_service.get_application(session, parse_application_id(application_id))
    generated = await offer_letter.generate_and_store(
        session,
        application,
        store=store,
        config=config,
        fmt=payload.format,
        overrides=payload.model_dump(include={"name", "role", "duration", "date"}, exclude_none=True),
    )
    return OfferLetterFileOut(
        message="Offer letter generated successfully.",
        path=generated.stored.relative_path,
        filename=generated.stored.filename,
        size=generated.stored.size,
        format=generated.format,
    )
