from __future__ import annotations

from typing import Any, Optional

import urllib3
from fastapi import Depends, HTTPException, Request, status
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.urllib3 import Request as GoogleAuthRequest
from google.oauth2 import id_token as google_id_token
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import settings
from onboarding.core.roles import Capability, Role, parse_role, role_allows
from onboarding.db.session import get_session
from onboarding.models.account import RecAccount, RecRole
from onboarding.schemas.user import UserContext

DEV_DEFAULT_EMAIL = "demo@example.com"


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def _forbidden(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)


def bearer_credential(request: Request) -> Optional[str]:
    scheme, _, credential = (request.headers.get("authorization") or "").partition(" ")
    if scheme.lower() != "bearer":
        return None
    return credential.strip() or None


def verify_google_credential(credential: str) -> dict[str, Any]:
    """Check a Google ID token against the configured OAuth client and workspace."""
    if not settings.google_client_id:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Missing Google OAuth client_id"
        )
    try:
        claims = google_id_token.verify_oauth2_token(
            credential,
            GoogleAuthRequest(urllib3.PoolManager()),
            audience=settings.google_client_id,
            clock_skew_in_seconds=settings.google_clock_skew_seconds,
        )
    except (GoogleAuthError, ValueError) as exc:
        if settings.environment == "production":
            raise _unauthorized("Invalid Google token") from exc
        raise _unauthorized(f"Invalid Google token: {exc}") from exc

    domain = settings.google_workspace_domain
    if domain and claims.get("hd") != domain:
        raise _forbidden("User not in allowed workspace domain")
    return claims


async def _account_role(session: AsyncSession, account: RecAccount) -> Optional[Role]:
    if account.role_id:
        role_row = await session.get(RecRole, account.role_id)
        if role_row:
            return parse_role(role_row.role_code) or parse_role(account.role_name)
    return parse_role(account.role_name)


async def identity_from_account(session: AsyncSession, email: str) -> UserContext:
    """Map a verified email to its stored account and role."""
    account = (
        await session.execute(select(RecAccount).where(func.lower(RecAccount.email) == email).limit(1))
    ).scalars().first()
    if account is None:
        raise _forbidden("User not found")
    if (account.status or "").lower() != "active":
        raise _forbidden("User is not active")
    role = await _account_role(session, account)
    return UserContext(
        user_id=email,
        email=email,
        roles=[role] if role else [],
        full_name=account.name,
        account_id=account.account_id,
    )


def display_name_from_email(email: str) -> str:
    local = email.split("@", 1)[0].strip()
    words = [word for word in local.replace("_", ".").split(".") if word]
    if not words:
        return local or email
    return " ".join(word[:1].upper() + word[1:] for word in words)


def identity_from_headers(request: Request) -> UserContext:
    # Local development only: X-User-Email, X-User-Name, X-User-Roles (comma separated).
    email = request.headers.get("x-user-email") or DEV_DEFAULT_EMAIL
    roles: list[Role] = []
    for raw in (request.headers.get("x-user-roles") or Role.HR_ADMIN.value).split(","):
        role = parse_role(raw)
        if role and role not in roles:
            roles.append(role)
    return UserContext(
        user_id=email,
        email=email,
        roles=roles or [Role.VIEWER],
        full_name=request.headers.get("x-user-name") or display_name_from_email(email),
    )


async def get_current_user(request: Request, session: AsyncSession = Depends(get_session)) -> UserContext:
    credential = bearer_credential(request)
    if credential is None:
        if settings.auth_mode == "google":
            raise _unauthorized("Missing bearer token")
        return identity_from_headers(request)

    email = str(verify_google_credential(credential).get("email") or "").lower()
    if not email:
        raise _unauthorized("Invalid token (missing email)")
    return await identity_from_account(session, email)


def require_capability(capability: Capability):
    async def dependency(user: UserContext = Depends(get_current_user)) -> UserContext:
        if not role_allows(user.roles, capability):
            raise _forbidden("Insufficient permissions")
        return user

    return dependency
