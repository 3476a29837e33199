import dataclasses
import io

import pytest
from sqlalchemy import select, update
from starlette.datastructures import Headers, UploadFile

from onboarding.core.datetime_utils import utcnow
from onboarding.core.errors import AlreadyResponded, NotFound, ValidationFailed
from onboarding.core.stage_machine import STAGE_DOCUMENTS, STAGE_OFFER, STAGE_SHORTLIST
from onboarding.models.account import RecAccount
from onboarding.models.application import RecApplication
from onboarding.models.document import RecApplicationDocument
from onboarding.services import public_responses
from onboarding.services.tokens import resolve_application_by_token


def _upload(name: str, data: bytes, content_type: str) -> UploadFile:
    return UploadFile(file=io.BytesIO(data), filename=name, headers=Headers({"content-type": content_type}))


async def test_shortlist_token_round_trip(db_session, dispatcher, actor, make_application):
    application = await make_application()
    await make_application(email="other@mailbox.io")
    result = await dispatcher.dispatch(db_session, application.application_id, "001", actor=actor)

    resolved = await resolve_application_by_token(db_session, STAGE_SHORTLIST, result.application.shortlist_token)

    assert resolved.application_id == application.application_id
    assert await resolve_application_by_token(db_session, STAGE_OFFER, result.application.shortlist_token) is None
    assert await resolve_application_by_token(db_session, STAGE_SHORTLIST, "") is None


async def test_shortlist_accept_moves_to_review(db_session, make_application):
    application = await make_application(shortlist_token="t" * 64, shortlist_response_status="pending")

    updated = await public_responses.respond_shortlist(db_session, "t" * 64, "accept")

    assert updated.shortlist_response_status == "accepted"
    assert updated.shortlist_responded_at is not None
    assert updated.status == "in_review"
    assert updated.onboarding_status == "documents-requested"


async def test_shortlist_decline_rejects(db_session, make_application):
    await make_application(shortlist_token="t" * 64, shortlist_response_status="pending")

    updated = await public_responses.respond_shortlist(db_session, "t" * 64, "decline")

    assert updated.status == "rejected"
    assert updated.onboarding_status == "declined"


async def test_repeat_shortlist_response_is_a_no_op(db_session, make_application):
    await make_application(shortlist_token="t" * 64, shortlist_response_status="pending")
    first = await public_responses.respond_shortlist(db_session, "t" * 64, "accept")
    responded_at = first.shortlist_responded_at

    with pytest.raises(AlreadyResponded) as excinfo:
        await public_responses.respond_shortlist(db_session, "t" * 64, "decline")

    assert excinfo.value.decision == "accepted"
    assert excinfo.value.responded_at == responded_at
    await db_session.refresh(first)
    assert first.shortlist_response_status == "accepted"
    assert first.shortlist_responded_at == responded_at
    assert first.status == "in_review"


async def test_losing_a_concurrent_response_reports_the_winner(db_session, make_application):
    application = await make_application(shortlist_token="t" * 64, shortlist_response_status="pending")
    # Another request wins the race; this session still holds the stale "pending" row.
    await db_session.execute(
        update(RecApplication)
        .where(RecApplication.application_id == application.application_id)
        .values(shortlist_response_status="declined", shortlist_responded_at=utcnow())
        .execution_options(synchronize_session=False)
    )
    await db_session.commit()
    assert application.shortlist_response_status == "pending"

    with pytest.raises(AlreadyResponded) as excinfo:
        await public_responses.respond_shortlist(db_session, "t" * 64, "accept")

    assert excinfo.value.decision == "declined"
    await db_session.refresh(application)
    assert application.status == "new"


async def test_unknown_token_and_bad_decision(db_session, make_application):
    await make_application(shortlist_token="t" * 64, shortlist_response_status="pending")

    with pytest.raises(NotFound):
        await public_responses.respond_shortlist(db_session, "unknown", "accept")
    with pytest.raises(ValidationFailed):
        await public_responses.respond_shortlist(db_session, "t" * 64, "maybe")


async def test_submit_documents_marks_stage_complete(db_session, make_application, store, workflow_config):
    application = await make_application(status="in_review", document_request_token="d" * 64)

    count = await public_responses.submit_documents(
        db_session,
        "d" * 64,
        [_upload("id-card.pdf", b"%PDF id", "application/pdf"), _upload("photo.png", b"\x89PNG data", "image/png")],
        store=store,
        config=workflow_config,
        labels=["ID card"],
    )

    assert count == 2
    await db_session.refresh(application)
    assert application.document_request_completed_at is not None
    assert application.onboarding_status == "documents-requested"
    documents = (
        await db_session.execute(
            select(RecApplicationDocument).where(RecApplicationDocument.application_id == application.application_id)
        )
    ).scalars().all()
    assert [doc.filename for doc in documents] == ["id-card.pdf", "photo.png"]
    assert [doc.label for doc in documents] == ["ID card", None]
    assert all(doc.uploaded_by_candidate for doc in documents)
    assert await store.read(documents[0].url) == b"%PDF id"


async def test_submit_without_files_is_a_no_op(db_session, make_application, store, workflow_config):
    application = await make_application(document_request_token="d" * 64)

    count = await public_responses.submit_documents(
        db_session, "d" * 64, [_upload("", b"", "application/octet-stream")], store=store, config=workflow_config
    )

    assert count == 0
    await db_session.refresh(application)
    assert application.document_request_completed_at is None


async def test_submit_rejects_disallowed_files(db_session, make_application, store, workflow_config):
    await make_application(document_request_token="d" * 64)
    too_many = [_upload(f"doc-{i}.pdf", b"%PDF", "application/pdf") for i in range(workflow_config.candidate_doc_max_files + 1)]

    with pytest.raises(ValidationFailed):
        await public_responses.submit_documents(db_session, "d" * 64, too_many, store=store, config=workflow_config)
    with pytest.raises(ValidationFailed):
        await public_responses.submit_documents(
            db_session, "d" * 64, [_upload("script.exe", b"MZ", "application/x-msdownload")], store=store, config=workflow_config
        )


async def test_submit_enforces_per_file_size_limit(db_session, make_application, store, workflow_config):
    application = await make_application(document_request_token="d" * 64)
    limited = dataclasses.replace(workflow_config, candidate_doc_max_bytes=8)

    with pytest.raises(ValidationFailed, match="exceeds"):
        await public_responses.submit_documents(
            db_session, "d" * 64, [_upload("scan.pdf", b"%PDF-1234", "application/pdf")], store=store, config=limited
        )
    await db_session.refresh(application)
    assert application.document_request_completed_at is None

    count = await public_responses.submit_documents(
        db_session, "d" * 64, [_upload("scan.pdf", b"%PDF-123", "application/pdf")], store=store, config=limited
    )
    assert count == 1

async def test_resolving_a_document_token_for_another_stage_fails(db_session, make_application):
    await make_application(document_request_token="d" * 64)

    assert await resolve_application_by_token(db_session, STAGE_DOCUMENTS, "d" * 64) is not None
    with pytest.raises(NotFound):
        await public_responses.respond_offer(db_session, "d" * 64, "accept", config=None)


async def test_offer_accept_hires_and_links_account(db_session, make_application, workflow_config):
    application = await make_application(status="offered", offer_token="o" * 64, offer_response_status="pending")

    updated = await public_responses.respond_offer(db_session, "o" * 64, "accept", config=workflow_config)

    assert updated.status == "hired"
    assert updated.onboarding_status == "hired"
    assert updated.offer_start_date is not None
    assert updated.offer_end_date is not None
    assert (updated.offer_end_date - updated.offer_start_date).days >= 89
    account = await db_session.get(RecAccount, updated.offer_account_id)
    assert account.email == application.email


async def test_offer_accept_keeps_dates_and_password(db_session, dispatcher, actor, make_application, workflow_config):
    start = utcnow().replace(microsecond=0)
    application = await make_application(
        status="in_review",
        shortlist_token="s" * 64,
        shortlist_response_status="accepted",
        document_request_token="d" * 64,
        document_request_completed_at=utcnow(),
        offer_start_date=start,
    )
    sent = await dispatcher.dispatch(db_session, application.application_id, "003", actor=actor)
    account = await db_session.get(RecAccount, sent.application.offer_account_id)
    hash_after_dispatch = account.password_hash

    updated = await public_responses.respond_offer(db_session, sent.application.offer_token, "accept", config=workflow_config)

    assert updated.offer_start_date == start
    await db_session.refresh(account)
    assert account.password_hash == hash_after_dispatch


async def test_repeat_offer_response_is_a_no_op(db_session, make_application, workflow_config):
    await make_application(status="offered", offer_token="o" * 64, offer_response_status="pending")
    first = await public_responses.respond_offer(db_session, "o" * 64, "decline", config=workflow_config)

    with pytest.raises(AlreadyResponded) as excinfo:
        await public_responses.respond_offer(db_session, "o" * 64, "accept", config=workflow_config)

    assert excinfo.value.decision == "declined"
    await db_session.refresh(first)
    assert first.status == "rejected"
    assert first.offer_account_id is None


async def test_offer_letter_file_rejects_tampered_path(db_session, make_application, store):
    await make_application(offer_token="o" * 64, offer_letter_path="../../etc/passwd", offer_letter_filename="passwd")

    with pytest.raises(ValidationFailed):
        await public_responses.offer_letter_file(db_session, "o" * 64, store=store)
