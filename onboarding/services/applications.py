from __future__ import annotations

import math
import re
from datetime import date, datetime, time
from typing import Any

from sqlalchemy import String, cast, delete, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.errors import NotFound, ValidationFailed
from onboarding.core.stage_machine import APPLICATION_STATUSES, document_stage_state, response_stage_state
from onboarding.models.account import RecAccount
from onboarding.models.application import RecApplication
from onboarding.models.document import RecApplicationDocument
from onboarding.models.email_log import RecApplicationEmailLog
from onboarding.models.job import RecJob
from onboarding.models.timeline import RecApplicationTimeline
from onboarding.schemas.application import (
    ApplicationOut,
    ApplicationUpdateIn,
    CandidateAccountOut,
    DocumentRequestStageOut,
    DocumentUploadOut,
    EmailLogOut,
    JobCountOut,
    JobSummaryOut,
    OfferLetterOut,
    OfferStageOut,
    ShortlistStageOut,
    TimelineEntryOut,
)
from onboarding.schemas.user import UserContext
from onboarding.services.timeline import append_timeline

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100
TOP_JOBS = 5


def _state_name(state) -> str:
    return type(state).__name__.lower()


def parse_tags(raw: list[str] | str | None) -> list[str]:
    if raw is None:
        return []
    items = raw if isinstance(raw, list) else re.split(r"[,\n]", raw)
    tags: list[str] = []
    for item in items:
        value = str(item).strip()
        if value and value not in tags:
            tags.append(value)
    return tags


def _parse_date(raw: str | None, *, end_of_day: bool = False) -> datetime | None:
    if not raw:
        return None
    try:
        parsed = date.fromisoformat(raw.strip()[:10])
    except ValueError:
        raise ValidationFailed("Invalid date filter.", errors=[raw]) from None
    if end_of_day:
        return datetime.combine(parsed, time(23, 59, 59, 999000))
    return datetime.combine(parsed, time.min)


def _filter_clauses(
    *,
    job_id: int | None,
    status: str | None,
    search: str | None,
    start_date: str | None,
    end_date: str | None,
) -> list[Any]:
    clauses: list[Any] = []
    if job_id:
        clauses.append(RecApplication.job_id == job_id)
    if status and status != "all":
        if status not in APPLICATION_STATUSES:
            raise ValidationFailed("Invalid status filter.", errors=[status])
        clauses.append(RecApplication.status == status)
    if search and search.strip():
        pattern = f"%{search.strip().lower()}%"
        clauses.append(
            or_(
                func.lower(RecApplication.applicant_name).like(pattern),
                func.lower(RecApplication.email).like(pattern),
                func.lower(RecApplication.phone).like(pattern),
                func.lower(RecApplication.job_title).like(pattern),
                func.lower(cast(RecApplication.tags, String)).like(pattern),
            )
        )
    start = _parse_date(start_date)
    end = _parse_date(end_date, end_of_day=True)
    if start:
        clauses.append(RecApplication.created_at >= start)
    if end:
        clauses.append(RecApplication.created_at <= end)
    return clauses


async def list_applications(
    session: AsyncSession,
    *,
    job_id: int | None = None,
    status: str | None = None,
    search: str | None = None,
    start_date: str | None = None,
    end_date: str | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict[str, Any]:
    page = max(1, page)
    limit = min(max(1, limit), MAX_PAGE_SIZE)
    clauses = _filter_clauses(job_id=job_id, status=status, search=search, start_date=start_date, end_date=end_date)

    total = (await session.execute(select(func.count()).select_from(RecApplication).where(*clauses))).scalar_one()
    rows = (
        await session.execute(
            select(RecApplication)
            .where(*clauses)
            .order_by(RecApplication.created_at.desc(), RecApplication.application_id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        )
    ).scalars().all()

    applications = [await serialize_application(session, row, include_history=False) for row in rows]
    return {
        "applications": applications,
        "pagination": {
            "page": page,
            "limit": limit,
            "total": total,
            "total_pages": math.ceil(total / limit) if total else 0,
        },
        "stats": await application_stats(session, clauses),
    }


async def application_stats(session: AsyncSession, clauses: list[Any]) -> dict[str, Any]:
    status_rows = (
        await session.execute(
            select(RecApplication.status, func.count()).where(*clauses).group_by(RecApplication.status)
        )
    ).all()
    by_status = {status: 0 for status in APPLICATION_STATUSES}
    for status, count in status_rows:
        by_status[status] = count

    count_col = func.count().label("count")
    job_rows = (
        await session.execute(
            select(RecApplication.job_id, count_col)
            .where(*clauses)
            .where(RecApplication.job_id.is_not(None))
            .group_by(RecApplication.job_id)
            .order_by(count_col.desc())
            .limit(TOP_JOBS)
        )
    ).all()
    job_ids = [job_id for job_id, _ in job_rows]
    jobs: dict[int, RecJob] = {}
    if job_ids:
        for job in (await session.execute(select(RecJob).where(RecJob.job_id.in_(job_ids)))).scalars().all():
            jobs[job.job_id] = job
    by_job = [
        JobCountOut(job=JobSummaryOut.model_validate(jobs[job_id]) if job_id in jobs else None, count=count)
        for job_id, count in job_rows
    ]
    return {"by_status": by_status, "by_job": by_job}


async def get_application(session: AsyncSession, application_id: int) -> RecApplication:
    application = await session.get(RecApplication, application_id)
    if not application:
        raise NotFound("Application not found.")
    return application


async def serialize_application(
    session: AsyncSession, application: RecApplication, *, include_history: bool = True
) -> ApplicationOut:
    job = await session.get(RecJob, application.job_id) if application.job_id else None
    account = await session.get(RecAccount, application.offer_account_id) if application.offer_account_id else None

    timeline: list[RecApplicationTimeline] = []
    email_logs: list[RecApplicationEmailLog] = []
    if include_history:
        timeline = (
            await session.execute(
                select(RecApplicationTimeline)
                .where(RecApplicationTimeline.application_id == application.application_id)
                .order_by(RecApplicationTimeline.changed_at.asc(), RecApplicationTimeline.timeline_id.asc())
            )
        ).scalars().all()
        email_logs = (
            await session.execute(
                select(RecApplicationEmailLog)
                .where(RecApplicationEmailLog.application_id == application.application_id)
                .order_by(RecApplicationEmailLog.sent_at.asc(), RecApplicationEmailLog.email_log_id.asc())
            )
        ).scalars().all()
    documents = (
        await session.execute(
            select(RecApplicationDocument)
            .where(RecApplicationDocument.application_id == application.application_id)
            .order_by(RecApplicationDocument.document_id.asc())
        )
    ).scalars().all()

    shortlist_state = response_stage_state(
        application.shortlist_token,
        application.shortlist_sent_at,
        application.shortlist_response_status,
        application.shortlist_responded_at,
    )
    document_state = document_stage_state(
        application.document_request_token,
        application.document_request_sent_at,
        application.document_request_completed_at,
    )
    offer_state = response_stage_state(
        application.offer_token,
        application.offer_sent_at,
        application.offer_response_status,
        application.offer_responded_at,
    )

    letter = None
    if application.offer_letter_path:
        letter = OfferLetterOut(
            filename=application.offer_letter_filename,
            path=application.offer_letter_path,
            format=application.offer_letter_format,
            size=application.offer_letter_size,
        )

    return ApplicationOut(
        application_id=application.application_id,
        job_id=application.job_id,
        job=JobSummaryOut.model_validate(job) if job else None,
        job_title=application.job_title,
        job_slug=application.job_slug,
        job_department=application.job_department,
        job_location=application.job_location,
        applicant_name=application.applicant_name,
        email=application.email,
        phone=application.phone,
        resume_url=application.resume_url,
        cover_letter=application.cover_letter,
        linkedin_url=application.linkedin_url,
        portfolio_url=application.portfolio_url,
        location=application.location,
        experience_years=application.experience_years,
        expected_salary=application.expected_salary,
        notice_period=application.notice_period,
        current_company=application.current_company,
        source=application.source,
        submitted_from=application.submitted_from,
        answers=application.answers or [],
        attachments=application.attachments or [],
        meta=application.meta,
        status=application.status,
        onboarding_status=application.onboarding_status,
        rating=application.rating,
        tags=application.tags or [],
        internal_notes=application.internal_notes,
        processed_by_email=application.processed_by_email,
        shortlist=ShortlistStageOut(
            state=_state_name(shortlist_state),
            token=application.shortlist_token,
            sent_at=application.shortlist_sent_at,
            response_status=application.shortlist_response_status,
            responded_at=application.shortlist_responded_at,
            candidate_message=application.shortlist_candidate_message,
        ),
        document_request=DocumentRequestStageOut(
            state=_state_name(document_state),
            token=application.document_request_token,
            sent_at=application.document_request_sent_at,
            completed_at=application.document_request_completed_at,
        ),
        document_uploads=[DocumentUploadOut.model_validate(doc) for doc in documents],
        offer=OfferStageOut(
            state=_state_name(offer_state),
            token=application.offer_token,
            sent_at=application.offer_sent_at,
            response_status=application.offer_response_status,
            responded_at=application.offer_responded_at,
            candidate_message=application.offer_candidate_message,
            user=CandidateAccountOut.model_validate(account) if account else None,
            start_date=application.offer_start_date,
            end_date=application.offer_end_date,
            letter=letter,
        ),
        timeline=[TimelineEntryOut.model_validate(entry) for entry in timeline],
        email_logs=[EmailLogOut.model_validate(entry) for entry in email_logs],
        created_at=application.created_at,
        updated_at=application.updated_at,
    )


async def update_application(
    session: AsyncSession,
    application: RecApplication,
    payload: ApplicationUpdateIn,
    *,
    actor: UserContext,
) -> RecApplication:
    data = payload.model_dump(exclude_unset=True)
    actor_email = str(actor.email)

    new_status = data.pop("status", None)
    status_note = data.pop("status_note", None)
    note = data.pop("note", None)
    if new_status is not None and new_status not in APPLICATION_STATUSES:
        raise ValidationFailed("Invalid status.", errors=[new_status])
    if "tags" in data:
        data["tags"] = parse_tags(data["tags"])

    for key, value in data.items():
        setattr(application, key, value)

    if new_status is not None and new_status != application.status:
        application.status = new_status
        application.processed_by_email = actor_email
        await append_timeline(
            session,
            application,
            status=new_status,
            note=(status_note or "").strip() or f"Status updated to {new_status}",
            changed_by_email=actor_email,
        )
    if note and note.strip():
        await append_timeline(
            session, application, status=application.status, note=note.strip(), changed_by_email=actor_email
        )

    await session.commit()
    await session.refresh(application)
    return application


async def delete_application(session: AsyncSession, application: RecApplication) -> None:
    app_id = application.application_id
    for model in (RecApplicationTimeline, RecApplicationEmailLog, RecApplicationDocument):
        await session.execute(delete(model).where(model.application_id == app_id))
    await session.delete(application)
    await session.commit()
