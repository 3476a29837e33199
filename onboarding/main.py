import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from onboarding.api.router import api_router
from onboarding.core.config import settings
from onboarding.core.errors import WorkflowError
from onboarding.db.session import SessionLocal, create_tables
from onboarding.middleware.logging import RequestLoggingMiddleware
from onboarding.services.accounts import seed_roles
from onboarding.services.email import build_mailer

logging.basicConfig(level=logging.INFO)
logging.getLogger("googleapiclient.discovery_cache").setLevel(logging.ERROR)

logger = logging.getLogger("onboarding.app")


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_tables:
        await create_tables()
    async with SessionLocal() as session:
        await seed_roles(session)
    yield


def create_app(*, mailer=None, use_lifespan: bool = True) -> FastAPI:
    app = FastAPI(
        title=settings.app_name,
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan if use_lifespan else None,
    )
    app.state.mailer = mailer if mailer is not None else build_mailer(settings)
    if app.state.mailer is None:
        logger.warning("email transport disabled", extra={"backend": settings.mail_backend})

    app.add_middleware(RequestLoggingMiddleware)

    @app.exception_handler(WorkflowError)
    async def _workflow_error_handler(request: Request, exc: WorkflowError):
        if exc.status_code >= 500:
            logger.error("workflow_error", extra={"path": request.url.path, "error": exc.message})
        content = {"message": exc.message}
        if exc.errors:
            content["errors"] = exc.errors
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(StarletteHTTPException)
    async def _http_error_handler(request: Request, exc: StarletteHTTPException):
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
        return JSONResponse(status_code=exc.status_code, content={"message": message}, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def _validation_error_handler(request: Request, exc: RequestValidationError):
        errors = [
            f"{'.'.join(str(part) for part in error.get('loc', ()) if part != 'body')}: {error.get('msg')}"
            for error in exc.errors()
        ]
        return JSONResponse(status_code=422, content={"message": "Invalid request.", "errors": errors})

    @app.get("/health")
    async def health_check():
        return {"status": "ok", "environment": settings.environment}

    app.include_router(api_router)
    return app


app = create_app()
