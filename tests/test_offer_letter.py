from __future__ import annotations

import sys
import types
import unittest
from datetime import datetime

import pytest

from onboarding.core.config import workflow_config
from onboarding.models.application import RecApplication
from onboarding.models.job import RecJob
from onboarding.services.offer_letter import (
    OfferTemplateData,
    build_template_data,
    generate_and_store,
    generate_offer_letter,
    inline_only_url_fetcher,
    month_label,
    render_offer_letter_html,
    render_pdf_bytes,
    resolve_duration,
)

from conftest import FAKE_PDF

LOCAL_FILE_LINK = '<link rel="attachment" href="file:///etc/passwd">'


def _application(**values) -> RecApplication:
    base = {"applicant_name": "Jane Doe", "job_title": "Product Designer", "meta": None}
    base.update(values)
    return RecApplication(**base)


class DurationResolutionTests(unittest.TestCase):
    def test_month_span_between_offer_dates(self) -> None:
        application = _application(offer_start_date=datetime(2024, 1, 1), offer_end_date=datetime(2024, 4, 1))
        self.assertEqual(resolve_duration(application), "3 Months")

    def test_short_span_falls_back_to_days(self) -> None:
        application = _application(offer_start_date=datetime(2024, 1, 20), offer_end_date=datetime(2024, 2, 10))
        self.assertEqual(resolve_duration(application), "1 Month")

    def test_override_wins(self) -> None:
        application = _application(
            meta={"duration": "6 Months"},
            offer_start_date=datetime(2024, 1, 1),
            offer_end_date=datetime(2024, 4, 1),
        )
        self.assertEqual(resolve_duration(application, override=" 2 Weeks "), "2 Weeks")

    def test_metadata_duration_beats_dates(self) -> None:
        application = _application(
            meta={"duration": "6 Months"},
            offer_start_date=datetime(2024, 1, 1),
            offer_end_date=datetime(2024, 4, 1),
        )
        self.assertEqual(resolve_duration(application), "6 Months")

    def test_employment_type_defaults(self) -> None:
        application = _application()
        self.assertEqual(resolve_duration(application, employment_type="internship"), "3 Months")
        self.assertEqual(resolve_duration(application, employment_type="full-time"), "Permanent")
        self.assertEqual(resolve_duration(application), "3 Months")

    def test_month_label(self) -> None:
        self.assertEqual(month_label(1), "1 Month")
        self.assertEqual(month_label(12), "12 Months")


class TemplateDataTests(unittest.TestCase):
    def test_defaults_from_application_and_job(self) -> None:
        job = RecJob(title="Design Intern", slug="design-intern", employment_type="internship")
        data = build_template_data(_application(), job=job, now=datetime(2024, 3, 5))
        self.assertEqual(data, OfferTemplateData(name="Jane Doe", role="Design Intern", duration="3 Months", date="05 March 2024"))

    def test_overrides_replace_fields(self) -> None:
        data = build_template_data(
            _application(), overrides={"name": "J. Doe", "role": "Lead", "date": "1 June 2024", "duration": "1 Year"}
        )
        self.assertEqual(data.name, "J. Doe")
        self.assertEqual(data.role, "Lead")
        self.assertEqual(data.date, "1 June 2024")
        self.assertEqual(data.duration, "1 Year")


async def test_html_letter_contains_template_fields():
    data = OfferTemplateData(name="Jane Doe", role="Product Designer", duration="3 Months", date="05 March 2024")
    content = await generate_offer_letter(data, workflow_config, fmt="html")
    html = content.decode("utf-8")
    assert "Dear Jane Doe" in html
    assert "Product Designer" in html
    assert "3 Months" in html


async def test_pdf_letter_uses_renderer():
    data = OfferTemplateData(name="Jane Doe", role="Designer", duration="3 Months", date="today")
    assert await generate_offer_letter(data, workflow_config) == FAKE_PDF


async def test_generate_and_store_writes_under_offer_letters(db_session, make_application, store, workflow_config):
    application = await make_application()
    generated = await generate_and_store(db_session, application, store=store, config=workflow_config)

    assert generated.format == "pdf"
    assert generated.stored.relative_path.startswith("offer-letters/")
    assert generated.stored.filename.endswith("offer-letter-jane-doe.pdf")
    assert await store.read(generated.stored.relative_path) == FAKE_PDF


def test_letter_html_escapes_applicant_supplied_fields():
    application = _application(applicant_name=LOCAL_FILE_LINK, job_title="<b>Designer</b>")

    html = render_offer_letter_html(build_template_data(application), workflow_config)

    assert LOCAL_FILE_LINK not in html
    assert "<b>Designer</b>" not in html
    assert "Dear &lt;link rel=&quot;attachment&quot;" in html


@pytest.mark.parametrize(
    "url",
    ["file:///etc/passwd", "http://169.254.169.254/latest/meta-data", "https://cdn.example.com/font.woff"],
)
def test_url_fetcher_refuses_external_resources(url):
    with pytest.raises(ValueError):
        inline_only_url_fetcher(url)


def test_pdf_renderer_restricts_resource_loading(monkeypatch):
    rendered = []

    class RecordingHTML:
        def __init__(self, *, string, url_fetcher):
            rendered.append((string, url_fetcher))

        def write_pdf(self):
            return b"%PDF-1.7"

    fake_weasyprint = types.ModuleType("weasyprint")
    fake_weasyprint.HTML = RecordingHTML
    monkeypatch.setitem(sys.modules, "weasyprint", fake_weasyprint)

    assert render_pdf_bytes("<p>Dear Jane</p>") == b"%PDF-1.7"
    assert rendered == [("<p>Dear Jane</p>", inline_only_url_fetcher)]
