from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.api import deps
from onboarding.core.auth import require_capability
from onboarding.core.roles import Capability
from onboarding.schemas.application import ApplicationListOut, ApplicationOut, ApplicationUpdateIn, MessageOut
from onboarding.schemas.user import UserContext
from onboarding.services import applications as application_service
from onboarding.services.workflow import parse_application_id

router = APIRouter(prefix="/applications", tags=["applications"])


@router.get("", response_model=ApplicationListOut)
async def list_applications(
    job_id: Optional[int] = Query(default=None),
    status_filter: Optional[str] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None),
    start_date: Optional[str] = Query(default=None),
    end_date: Optional[str] = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=application_service.DEFAULT_PAGE_SIZE, ge=1, le=application_service.MAX_PAGE_SIZE),
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_capability(Capability.VIEW_APPLICATIONS)),
):
    return await application_service.list_applications(
        session,
        job_id=job_id,
        status=status_filter,
        search=search,
        start_date=start_date,
        end_date=end_date,
        page=page,
        limit=limit,
    )


@router.get("/{application_id}", response_model=ApplicationOut)
async def get_application(
    application_id: str,
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_capability(Capability.VIEW_APPLICATIONS)),
):
    application = await application_service.get_application(session, parse_application_id(application_id))
    return await application_service.serialize_application(session, application)


@router.patch("/{application_id}", response_model=ApplicationOut)
async def update_application(
    application_id: str,
    payload: ApplicationUpdateIn,
    session: AsyncSession = Depends(deps.get_db_session),
    user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    application = await application_service.get_application(session, parse_application_id(application_id))
    application = await application_service.update_application(session, application, payload, actor=user)
    return await application_service.serialize_application(session, application)


@router.delete("/{application_id}", response_model=MessageOut, status_code=status.HTTP_200_OK)
async def delete_application(
    application_id: str,
    session: AsyncSession = Depends(deps.get_db_session),
    _user: UserContext = Depends(require_capability(Capability.MANAGE_APPLICATIONS)),
):
    application = await application_service.get_application(session, parse_application_id(application_id))
    await application_service.delete_application(session, application)
    return MessageOut(message="Application deleted successfully.")
