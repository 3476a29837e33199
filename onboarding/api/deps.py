from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import WorkflowConfig, workflow_config
from onboarding.db.session import get_session
from onboarding.services.storage import AttachmentStore
from onboarding.services.workflow import WorkflowDispatcher


async def get_db_session() -> AsyncSession:
    async for session in get_session():
        yield session


def get_workflow_config() -> WorkflowConfig:
    return workflow_config


def get_attachment_store(config: WorkflowConfig = Depends(get_workflow_config)) -> AttachmentStore:
    return AttachmentStore(config.upload_root)


def get_mailer(request: Request):
    return getattr(request.app.state, "mailer", None)


def get_dispatcher(
    config: WorkflowConfig = Depends(get_workflow_config),
    mailer=Depends(get_mailer),
    store: AttachmentStore = Depends(get_attachment_store),
) -> WorkflowDispatcher:
    return WorkflowDispatcher(config=config, mailer=mailer, store=store)
