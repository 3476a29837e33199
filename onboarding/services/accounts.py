from __future__ import annotations

import logging
import re
import secrets
from dataclasses import dataclass

from passlib.context import CryptContext
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import WorkflowConfig
from onboarding.core.roles import ROLE_NAMES, Role
from onboarding.models.account import RecAccount, RecRole
from onboarding.models.application import RecApplication

logger = logging.getLogger("onboarding.accounts")

pwd_context = CryptContext(schemes=["argon2"], deprecated="auto")

CANDIDATE_ROLE_PREFERENCE = ("Candidate", "Viewer")
SEEDED_ROLES = (Role.CANDIDATE, Role.VIEWER, Role.HR_EXEC, Role.HR_ADMIN)


@dataclass
class ProvisionedAccount:
    account: RecAccount
    password: str | None
    created: bool


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str | None) -> bool:
    if not hashed_password:
        return False
    return pwd_context.verify(plain_password, hashed_password)


def derive_candidate_password(application: RecApplication, suffix: str) -> str:
    raw = (application.applicant_name or application.email or "candidate").strip()
    first_name = raw.split()[0] if raw.split() else "candidate"
    cleaned = re.sub(r"[^a-z0-9]", "", first_name.lower()) or "candidate"
    return f"{cleaned}{suffix}"


async def _default_candidate_role(session: AsyncSession) -> RecRole | None:
    for name in CANDIDATE_ROLE_PREFERENCE:
        role = (await session.execute(select(RecRole).where(RecRole.role_name == name).limit(1))).scalars().first()
        if role:
            return role
    return (await session.execute(select(RecRole).order_by(RecRole.role_id.asc()).limit(1))).scalars().first()


async def find_candidate_account(session: AsyncSession, application: RecApplication) -> RecAccount | None:
    if application.offer_account_id:
        account = await session.get(RecAccount, application.offer_account_id)
        if account:
            return account
    email = (application.email or "").strip().lower()
    if not email:
        return None
    return (
        await session.execute(select(RecAccount).where(func.lower(RecAccount.email) == email).limit(1))
    ).scalars().first()


async def ensure_candidate_account(
    session: AsyncSession,
    application: RecApplication,
    *,
    config: WorkflowConfig,
    reset_password: bool = True,
) -> ProvisionedAccount | None:
    """
    Create or refresh the login account linked to ``application``.

    With ``reset_password`` the derived password is stored (hashed) and returned in cleartext
    for the outbound email. Without it an existing account keeps its password and a new one
    gets a random password that is never returned.
    """
    email = (application.email or "").strip().lower()
    if not email:
        return None

    account = await find_candidate_account(session, application)
    role = await _default_candidate_role(session)
    role_name = role.role_name if role else (account.role_name if account else ROLE_NAMES[Role.CANDIDATE])

    password: str | None = None
    if reset_password:
        password = derive_candidate_password(application, config.candidate_password_suffix)

    created = False
    if account is None:
        account = RecAccount(
            name=application.applicant_name or email,
            email=email,
            password_hash=hash_password(password or secrets.token_hex(10)),
            role_id=role.role_id if role else None,
            role_name=role_name,
            status="active",
        )
        session.add(account)
        created = True
    else:
        account.role_name = role_name
        if role:
            account.role_id = role.role_id
        account.status = "active"
        if password:
            account.password_hash = hash_password(password)

    await session.flush()
    application.offer_account_id = account.account_id
    logger.info(
        "candidate_account_provisioned",
        extra={"application_id": application.application_id, "account_id": account.account_id, "created": created},
    )
    return ProvisionedAccount(account=account, password=password, created=created)


async def seed_roles(session: AsyncSession) -> None:
    existing = set((await session.execute(select(RecRole.role_code))).scalars().all())
    for role in SEEDED_ROLES:
        if role.value in existing:
            continue
        session.add(RecRole(role_code=role.value, role_name=ROLE_NAMES[role]))
    await session.commit()
