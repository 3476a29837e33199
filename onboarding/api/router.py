from fastapi import APIRouter

from onboarding.api.routes import applications
from onboarding.api.routes import public
from onboarding.api.routes import workflow

api_router = APIRouter()
# Workflow routes first so "/applications/workflow-email/batch" wins over "/applications/{application_id}".
api_router.include_router(workflow.router)
api_router.include_router(applications.router)
api_router.include_router(public.router)
