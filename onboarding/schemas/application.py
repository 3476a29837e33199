from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, Field


class TimelineEntryOut(BaseModel):
    status: str
    note: Optional[str] = None
    changed_by_email: Optional[str] = None
    changed_at: datetime

    class Config:
        from_attributes = True


class EmailLogOut(BaseModel):
    subject: str
    body: Optional[str] = None
    recipient: str
    sent_by_email: Optional[str] = None
    sent_at: datetime

    class Config:
        from_attributes = True


class DocumentUploadOut(BaseModel):
    filename: str
    label: Optional[str] = None
    url: str
    uploaded_at: datetime
    uploaded_by_candidate: bool

    class Config:
        from_attributes = True


class ShortlistStageOut(BaseModel):
    state: str
    token: Optional[str] = None
    sent_at: Optional[datetime] = None
    response_status: Optional[str] = None
    responded_at: Optional[datetime] = None
    candidate_message: Optional[str] = None


class DocumentRequestStageOut(BaseModel):
    state: str
    token: Optional[str] = None
    sent_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None


class OfferLetterOut(BaseModel):
    filename: Optional[str] = None
    path: Optional[str] = None
    format: Optional[str] = None
    size: Optional[int] = None


class CandidateAccountOut(BaseModel):
    account_id: int
    name: str
    email: str
    role_name: str
    status: str

    class Config:
        from_attributes = True


class OfferStageOut(BaseModel):
    state: str
    token: Optional[str] = None
    sent_at: Optional[datetime] = None
    response_status: Optional[str] = None
    responded_at: Optional[datetime] = None
    candidate_message: Optional[str] = None
    user: Optional[CandidateAccountOut] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    letter: Optional[OfferLetterOut] = None


class JobSummaryOut(BaseModel):
    job_id: int
    title: str
    slug: str
    department: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[str] = None
    status: Optional[str] = None

    class Config:
        from_attributes = True


class ApplicationOut(BaseModel):
    application_id: int
    job_id: Optional[int] = None
    job: Optional[JobSummaryOut] = None
    job_title: Optional[str] = None
    job_slug: Optional[str] = None
    job_department: Optional[str] = None
    job_location: Optional[str] = None

    applicant_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    linkedin_url: Optional[str] = None
    portfolio_url: Optional[str] = None
    location: Optional[str] = None
    experience_years: Optional[float] = None
    expected_salary: Optional[str] = None
    notice_period: Optional[str] = None
    current_company: Optional[str] = None
    source: Optional[str] = None
    submitted_from: Optional[str] = None
    answers: list[dict[str, Any]] = Field(default_factory=list)
    attachments: list[dict[str, Any]] = Field(default_factory=list)
    meta: Optional[dict[str, Any]] = None

    status: str
    onboarding_status: str
    rating: Optional[int] = None
    tags: list[str] = Field(default_factory=list)
    internal_notes: Optional[str] = None
    processed_by_email: Optional[str] = None

    shortlist: ShortlistStageOut
    document_request: DocumentRequestStageOut
    document_uploads: list[DocumentUploadOut] = Field(default_factory=list)
    offer: OfferStageOut

    timeline: list[TimelineEntryOut] = Field(default_factory=list)
    email_logs: list[EmailLogOut] = Field(default_factory=list)

    created_at: datetime
    updated_at: datetime


class PaginationOut(BaseModel):
    page: int
    limit: int
    total: int
    total_pages: int


class JobCountOut(BaseModel):
    job: Optional[JobSummaryOut] = None
    count: int


class ApplicationStatsOut(BaseModel):
    by_status: dict[str, int]
    by_job: list[JobCountOut]


class ApplicationListOut(BaseModel):
    applications: list[ApplicationOut]
    pagination: PaginationOut
    stats: ApplicationStatsOut


class ApplicationUpdateIn(BaseModel):
    status: Optional[str] = None
    status_note: Optional[str] = None
    note: Optional[str] = None
    internal_notes: Optional[str] = None
    tags: Optional[list[str] | str] = None
    rating: Optional[int] = Field(default=None, ge=0, le=5)
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    experience_years: Optional[float] = Field(default=None, ge=0, le=60)
    expected_salary: Optional[str] = None
    notice_period: Optional[str] = None
    attachments: Optional[list[dict[str, Any]]] = None


class MessageOut(BaseModel):
    message: str
