from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.datetime_utils import utcnow
from onboarding.models.application import RecApplication
from onboarding.models.email_log import RecApplicationEmailLog
from onboarding.models.timeline import RecApplicationTimeline


async def append_timeline(
    session: AsyncSession,
    application: RecApplication,
    *,
    status: str,
    note: str | None = None,
    changed_by_email: str | None = None,
) -> RecApplicationTimeline:
    entry = RecApplicationTimeline(
        application_id=application.application_id,
        status=status,
        note=note,
        changed_by_email=changed_by_email,
        changed_at=utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry


async def append_email_log(
    session: AsyncSession,
    application: RecApplication,
    *,
    subject: str,
    body: str,
    recipient: str,
    sent_by_email: str | None,
) -> RecApplicationEmailLog:
    entry = RecApplicationEmailLog(
        application_id=application.application_id,
        subject=subject,
        body=body,
        recipient=recipient,
        sent_by_email=sent_by_email,
        sent_at=utcnow(),
    )
    session.add(entry)
    await session.flush()
    return entry
