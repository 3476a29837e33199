from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Union


# Primary application statuses.
NEW = "new"
IN_REVIEW = "in_review"
SHORTLISTED = "shortlisted"
INTERVIEW = "interview"
OFFERED = "offered"
HIRED = "hired"
REJECTED = "rejected"
WITHDRAWN = "withdrawn"

APPLICATION_STATUSES: tuple[str, ...] = (
    NEW,
    IN_REVIEW,
    SHORTLISTED,
    INTERVIEW,
    OFFERED,
    HIRED,
    REJECTED,
    WITHDRAWN,
)

# Order in which the onboarding workflow moves an application forward.
WORKFLOW_PROGRESSION: tuple[str, ...] = (NEW, SHORTLISTED, IN_REVIEW, INTERVIEW, OFFERED, HIRED)


# Coarse onboarding markers.
ONBOARDING_NEW = "new"
ONBOARDING_SHORTLISTED = "shortlisted"
ONBOARDING_DOCUMENTS_REQUESTED = "documents-requested"
ONBOARDING_OFFER_SENT = "offer-sent"
ONBOARDING_HIRED = "hired"
ONBOARDING_DECLINED = "declined"


# Candidate responses on a stage.
RESPONSE_PENDING = "pending"
RESPONSE_ACCEPTED = "accepted"
RESPONSE_DECLINED = "declined"

DECISION_ACCEPT = "accept"
DECISION_DECLINE = "decline"
DECISIONS: frozenset[str] = frozenset({DECISION_ACCEPT, DECISION_DECLINE})


# Workflow email templates.
TEMPLATE_SHORTLIST = "001"
TEMPLATE_DOCUMENT_REQUEST = "002"
TEMPLATE_OFFER = "003"
WORKFLOW_TEMPLATES: tuple[str, ...] = (TEMPLATE_SHORTLIST, TEMPLATE_DOCUMENT_REQUEST, TEMPLATE_OFFER)


# Token-bearing stages.
STAGE_SHORTLIST = "shortlist"
STAGE_DOCUMENTS = "documents"
STAGE_OFFER = "offer"


@dataclass(frozen=True)
class Idle:
    pass


@dataclass(frozen=True)
class Sent:
    token: str
    sent_at: datetime | None


@dataclass(frozen=True)
class Responded:
    decision: str
    at: datetime | None


@dataclass(frozen=True)
class Completed:
    token: str | None
    at: datetime


StageState = Union[Idle, Sent, Responded, Completed]


def normalize_template(raw: str | None) -> str | None:
    value = (raw or "").strip()
    if value in WORKFLOW_TEMPLATES:
        return value
    return None


def normalize_decision(raw: str | None) -> str | None:
    value = (raw or "").strip().lower()
    return value if value in DECISIONS else None


def response_for_decision(decision: str) -> str:
    return RESPONSE_ACCEPTED if decision == DECISION_ACCEPT else RESPONSE_DECLINED


def response_stage_state(token: str | None, sent_at: datetime | None, response_status: str | None, responded_at: datetime | None) -> StageState:
    if response_status in {RESPONSE_ACCEPTED, RESPONSE_DECLINED}:
        return Responded(decision=response_status, at=responded_at)
    if token:
        return Sent(token=token, sent_at=sent_at)
    return Idle()


def document_stage_state(token: str | None, sent_at: datetime | None, completed_at: datetime | None) -> StageState:
    if completed_at is not None:
        return Completed(token=token, at=completed_at)
    if token:
        return Sent(token=token, sent_at=sent_at)
    return Idle()


def is_past(status: str | None, milestone: str) -> bool:
    """True when ``status`` sits later in the workflow progression than ``milestone``."""
    if status not in WORKFLOW_PROGRESSION:
        return False
    return WORKFLOW_PROGRESSION.index(status) > WORKFLOW_PROGRESSION.index(milestone)


def status_after_document_request(current: str | None) -> str:
    if is_past(current, IN_REVIEW):
        return current  # type: ignore[return-value]
    return IN_REVIEW
