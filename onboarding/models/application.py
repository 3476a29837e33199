from datetime import datetime

from sqlalchemy import JSON, DateTime, Float, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from onboarding.core.datetime_utils import utcnow
from onboarding.core.stage_machine import NEW, ONBOARDING_NEW
from onboarding.db.base import Base


class RecApplication(Base):
    """
    One candidate submission for one job posting.

    The three workflow stages (shortlist, document request, offer) live as column groups on
    this row; each token column carries a unique index so a token resolves to one application.
    """

    __tablename__ = "rec_application"

    application_id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    job_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    job_title: Mapped[str | None] = mapped_column(String(200), nullable=True)
    job_slug: Mapped[str | None] = mapped_column(String(200), nullable=True, index=True)
    job_department: Mapped[str | None] = mapped_column(String(120), nullable=True)
    job_location: Mapped[str | None] = mapped_column(String(200), nullable=True)

    applicant_name: Mapped[str] = mapped_column(String(200))
    email: Mapped[str | None] = mapped_column(String(255), nullable=True, index=True)
    phone: Mapped[str | None] = mapped_column(String(40), nullable=True)
    resume_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cover_letter: Mapped[str | None] = mapped_column(Text, nullable=True)
    linkedin_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    portfolio_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    experience_years: Mapped[float | None] = mapped_column(Float, nullable=True)
    expected_salary: Mapped[str | None] = mapped_column(String(120), nullable=True)
    notice_period: Mapped[str | None] = mapped_column(String(120), nullable=True)
    current_company: Mapped[str | None] = mapped_column(String(200), nullable=True)
    source: Mapped[str | None] = mapped_column(String(120), nullable=True)
    submitted_from: Mapped[str | None] = mapped_column(String(200), nullable=True)

    answers: Mapped[list | None] = mapped_column(JSON, nullable=True)
    attachments: Mapped[list | None] = mapped_column(JSON, nullable=True)
    meta: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    status: Mapped[str] = mapped_column(String(30), default=NEW, index=True)
    onboarding_status: Mapped[str] = mapped_column(String(30), default=ONBOARDING_NEW)
    rating: Mapped[int | None] = mapped_column(Integer, nullable=True)
    tags: Mapped[list | None] = mapped_column(JSON, nullable=True)
    internal_notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    processed_by_email: Mapped[str | None] = mapped_column(String(255), nullable=True)

    shortlist_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    shortlist_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shortlist_response_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    shortlist_responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    shortlist_candidate_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    document_request_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    document_request_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    document_request_completed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    offer_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True, index=True)
    offer_sent_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    offer_response_status: Mapped[str | None] = mapped_column(String(20), nullable=True)
    offer_responded_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    offer_candidate_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    offer_account_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    offer_start_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    offer_end_date: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    offer_letter_filename: Mapped[str | None] = mapped_column(String(255), nullable=True)
    offer_letter_path: Mapped[str | None] = mapped_column(String(500), nullable=True)
    offer_letter_format: Mapped[str | None] = mapped_column(String(20), nullable=True)
    offer_letter_size: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow, onupdate=utcnow)
