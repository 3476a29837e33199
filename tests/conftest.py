import os

os.environ.setdefault("OB_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("OB_AUTH_MODE", "dev")
os.environ.setdefault("OB_MAIL_BACKEND", "disabled")
os.environ.setdefault("OB_AUTO_CREATE_TABLES", "false")

import dataclasses
import itertools

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from onboarding.api import deps
from onboarding.core.config import workflow_config as base_workflow_config
from onboarding.core.roles import Role
from onboarding.db.session import get_session
from onboarding.models import Base, RecApplication, RecJob
from onboarding.schemas.user import UserContext
from onboarding.services import offer_letter
from onboarding.services.accounts import seed_roles
from onboarding.services.email import EmailSendError
from onboarding.services.storage import AttachmentStore
from onboarding.services.workflow import WorkflowDispatcher

FAKE_PDF = b"%PDF-1.4 generated offer letter"
_job_counter = itertools.count(1)
HR_HEADERS = {"X-User-Email": "hr.admin@acme.io", "X-User-Roles": "hr_admin"}


class FakeMailer:
    def __init__(self) -> None:
        self.sent = []
        self.fail = False

    async def send(self, message) -> None:
        if self.fail:
            raise EmailSendError("smtp relay unreachable")
        self.sent.append(message)


@pytest.fixture(autouse=True)
def fake_pdf_renderer(monkeypatch):
    monkeypatch.setattr(offer_letter, "render_pdf_bytes", lambda html: FAKE_PDF)


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        await seed_roles(session)
        yield session
        await session.rollback()


@pytest.fixture()
def workflow_config(tmp_path):
    return dataclasses.replace(
        base_workflow_config,
        upload_root=str(tmp_path / "uploads"),
        public_app_origin="https://careers.acme.io",
        public_app_base_path="",
        candidate_password_suffix="@team",
        organization_name="Acme Labs",
    )


@pytest.fixture()
def store(workflow_config):
    return AttachmentStore(workflow_config.upload_root)


@pytest.fixture()
def mailer():
    return FakeMailer()


@pytest.fixture()
def dispatcher(workflow_config, mailer, store):
    return WorkflowDispatcher(config=workflow_config, mailer=mailer, store=store)


@pytest.fixture()
def actor():
    return UserContext(user_id="hr.admin@acme.io", email="hr.admin@acme.io", roles=[Role.HR_ADMIN], full_name="Hr Admin")


@pytest.fixture()
def make_application(db_session):
    async def _make(**overrides) -> RecApplication:
        job = RecJob(
            title=overrides.pop("job_title_override", "Product Designer"),
            slug=f"product-designer-{next(_job_counter)}",
            department="Design",
            location="Remote",
            employment_type=overrides.pop("employment_type", "full-time"),
        )
        db_session.add(job)
        await db_session.flush()
        values = {
            "job_id": job.job_id,
            "job_title": job.title,
            "job_slug": job.slug,
            "applicant_name": "Jane Doe",
            "email": "jane.doe@mailbox.io",
            "phone": "+1 555 0100",
            "status": "new",
            "onboarding_status": "new",
        }
        values.update(overrides)
        application = RecApplication(**values)
        db_session.add(application)
        await db_session.commit()
        return application

    return _make


@pytest.fixture()
def app(session_factory, workflow_config, mailer):
    from onboarding.main import create_app

    application = create_app(mailer=mailer, use_lifespan=False)

    async def _session():
        async with session_factory() as session:
            yield session

    application.dependency_overrides[deps.get_db_session] = _session
    application.dependency_overrides[get_session] = _session
    application.dependency_overrides[deps.get_workflow_config] = lambda: workflow_config
    return application


@pytest.fixture()
async def client(app, session_factory):
    async with session_factory() as session:
        await seed_roles(session)

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as http:
        yield http
