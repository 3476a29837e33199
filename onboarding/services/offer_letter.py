from __future__ import annotations

import html as html_lib
import logging
import re
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import anyio
from sqlalchemy.ext.asyncio import AsyncSession

from onboarding.core.config import WorkflowConfig
from onboarding.core.datetime_utils import format_long_date, utcnow, whole_months_between
from onboarding.core.errors import InternalFailure
from onboarding.core.paths import TEMPLATES_DIR
from onboarding.core.uploads import sanitize_filename
from onboarding.models.application import RecApplication
from onboarding.models.job import RecJob
from onboarding.services.storage import OFFER_LETTERS_DIR, AttachmentStore, StoredFile

logger = logging.getLogger("onboarding.offer_letter")

LETTER_FORMATS = ("pdf", "html")
INTERNSHIP_DEFAULT_DURATION = "3 Months"
STANDARD_DEFAULT_DURATION = "Permanent"
GENERIC_DEFAULT_DURATION = "3 Months"


@dataclass(frozen=True)
class OfferTemplateData:
    name: str
    role: str
    duration: str
    date: str


@dataclass(frozen=True)
class GeneratedLetter:
    stored: StoredFile
    format: str


def month_label(months: int) -> str:
    return f"{months} Month" if months == 1 else f"{months} Months"


def _is_internship(employment_type: str | None) -> bool:
    return "intern" in (employment_type or "").strip().lower()


def _span_months(start: datetime | None, end: datetime | None) -> int | None:
    if not start or not end:
        return None
    months = whole_months_between(start.date(), end.date())
    if months > 0:
        return months
    days = (end - start).days
    if days <= 0:
        return None
    return max(1, round(days / 30))


def resolve_duration(
    application: RecApplication,
    *,
    override: str | None = None,
    employment_type: str | None = None,
) -> str:
    """
    Pick the duration label printed on the letter.

    Order: explicit override, free-form ``meta["duration"]``, month span between the offer
    start/end dates, employment-type default, generic default.
    """
    if override and override.strip():
        return override.strip()

    meta = application.meta or {}
    meta_duration = meta.get("duration") if isinstance(meta, dict) else None
    if isinstance(meta_duration, str) and meta_duration.strip():
        return meta_duration.strip()

    months = _span_months(application.offer_start_date, application.offer_end_date)
    if months:
        return month_label(months)

    if employment_type:
        return INTERNSHIP_DEFAULT_DURATION if _is_internship(employment_type) else STANDARD_DEFAULT_DURATION
    return GENERIC_DEFAULT_DURATION


def build_template_data(
    application: RecApplication,
    *,
    job: RecJob | None = None,
    overrides: dict[str, Any] | None = None,
    now: datetime | None = None,
) -> OfferTemplateData:
    overrides = overrides or {}

    def _pick(key: str, fallback: str) -> str:
        value = overrides.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
        return fallback

    role = (job.title if job else None) or application.job_title or "Team Member"
    employment_type = job.employment_type if job else None
    return OfferTemplateData(
        name=_pick("name", application.applicant_name or "Candidate"),
        role=_pick("role", role),
        duration=resolve_duration(application, override=overrides.get("duration"), employment_type=employment_type),
        date=_pick("date", format_long_date(now or utcnow())),
    )


def render_offer_letter_html(data: OfferTemplateData, config: WorkflowConfig) -> str:
    raw = (TEMPLATES_DIR / "offer_letter.html").read_text(encoding="utf-8")
    context = {
        "name": data.name,
        "role": data.role,
        "duration": data.duration,
        "date": data.date,
        "organization_name": config.organization_name,
        "organization_address": config.organization_address,
        "signatory_name": config.signatory_name,
        "signatory_title": config.signatory_title,
    }
    return raw.format_map({key: html_lib.escape("" if value is None else str(value)) for key, value in context.items()})


def inline_only_url_fetcher(url: str, *args, **kwargs):
    """Serve inline ``data:`` resources to WeasyPrint and refuse every other scheme."""
    if not url.startswith("data:"):
        raise ValueError(f"Offer letters may not load external resources: {url}")
    from weasyprint import default_url_fetcher

    return default_url_fetcher(url, *args, **kwargs)


def render_pdf_bytes(html: str) -> bytes:
    try:
        from weasyprint import HTML
    except Exception as exc:
        raise InternalFailure("WeasyPrint not available") from exc
    try:
        return HTML(string=html, url_fetcher=inline_only_url_fetcher).write_pdf()
    except Exception as exc:
        raise InternalFailure("Failed to render PDF") from exc


async def generate_offer_letter(data: OfferTemplateData, config: WorkflowConfig, *, fmt: str = "pdf") -> bytes:
    # Both formats share the same layout; "html" skips the PDF rendering step.
    html = render_offer_letter_html(data, config)
    if fmt == "html":
        return html.encode("utf-8")
    return await anyio.to_thread.run_sync(render_pdf_bytes, html)


def _letter_filename(data: OfferTemplateData, fmt: str) -> str:
    slug = re.sub(r"[^a-z0-9]+", "-", data.name.lower()).strip("-") or "candidate"
    return sanitize_filename(f"offer-letter-{slug}.{fmt}")


async def generate_and_store(
    session: AsyncSession,
    application: RecApplication,
    *,
    store: AttachmentStore,
    config: WorkflowConfig,
    fmt: str = "pdf",
    overrides: dict[str, Any] | None = None,
) -> GeneratedLetter:
    if fmt not in LETTER_FORMATS:
        fmt = "pdf"
    job = await session.get(RecJob, application.job_id) if application.job_id else None
    data = build_template_data(application, job=job, overrides=overrides)
    content = await generate_offer_letter(data, config, fmt=fmt)
    stored = await store.save(OFFER_LETTERS_DIR, _letter_filename(data, fmt), content)
    logger.info(
        "offer_letter_generated",
        extra={"application_id": application.application_id, "path": stored.relative_path, "format": fmt},
    )
    return GeneratedLetter(stored=stored, format=fmt)
