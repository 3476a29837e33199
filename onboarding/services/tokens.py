from __future__ import annotations

import secrets

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.stage_machine import STAGE_DOCUMENTS, STAGE_OFFER, STAGE_SHORTLIST
from onboarding.models.application import RecApplication

TOKEN_BYTES = 32

_TOKEN_COLUMNS = {
    STAGE_SHORTLIST: RecApplication.shortlist_token,
    STAGE_DOCUMENTS: RecApplication.document_request_token,
    STAGE_OFFER: RecApplication.offer_token,
}


def mint_token() -> str:
    return secrets.token_hex(TOKEN_BYTES)


def token_column(stage: str):
    try:
        return _TOKEN_COLUMNS[stage]
    except KeyError:
        raise ValueError(f"Unknown token stage: {stage}") from None


async def resolve_application_by_token(session: AsyncSession, stage: str, token: str | None) -> RecApplication | None:
    value = (token or "").strip()
    if not value:
        return None
    column = token_column(stage)
    return (
        await session.execute(select(RecApplication).where(column == value).limit(1))
    ).scalars().first()
