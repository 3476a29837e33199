from __future__ import annotations

from datetime import datetime
import unittest

from onboarding.core.stage_machine import (
    HIRED,
    IN_REVIEW,
    INTERVIEW,
    NEW,
    OFFERED,
    REJECTED,
    RESPONSE_ACCEPTED,
    RESPONSE_DECLINED,
    RESPONSE_PENDING,
    SHORTLISTED,
    TEMPLATE_OFFER,
    Completed,
    Idle,
    Responded,
    Sent,
    document_stage_state,
    is_past,
    normalize_decision,
    normalize_template,
    response_for_decision,
    response_stage_state,
    status_after_document_request,
)


class StageStateTests(unittest.TestCase):
    def test_untouched_stage_is_idle(self) -> None:
        self.assertEqual(response_stage_state(None, None, None, None), Idle())
        self.assertEqual(document_stage_state(None, None, None), Idle())

    def test_pending_stage_is_sent(self) -> None:
        sent_at = datetime(2024, 5, 1, 9, 30)
        state = response_stage_state("abc", sent_at, RESPONSE_PENDING, None)
        self.assertEqual(state, Sent(token="abc", sent_at=sent_at))

    def test_resolved_stage_reports_decision(self) -> None:
        at = datetime(2024, 5, 2, 10, 0)
        self.assertEqual(response_stage_state("abc", None, RESPONSE_ACCEPTED, at), Responded(RESPONSE_ACCEPTED, at))
        self.assertEqual(response_stage_state("abc", None, RESPONSE_DECLINED, at), Responded(RESPONSE_DECLINED, at))

    def test_document_stage_completes_on_submission(self) -> None:
        at = datetime(2024, 5, 3, 12, 0)
        self.assertEqual(document_stage_state("tok", None, at), Completed(token="tok", at=at))
        self.assertIsInstance(document_stage_state("tok", at, None), Sent)


class StatusProgressionTests(unittest.TestCase):
    def test_document_request_moves_early_statuses_to_review(self) -> None:
        for status in (NEW, SHORTLISTED, IN_REVIEW, REJECTED):
            self.assertEqual(status_after_document_request(status), IN_REVIEW)

    def test_document_request_keeps_later_statuses(self) -> None:
        for status in (INTERVIEW, OFFERED, HIRED):
            self.assertEqual(status_after_document_request(status), status)

    def test_is_past_ignores_statuses_outside_progression(self) -> None:
        self.assertTrue(is_past(HIRED, IN_REVIEW))
        self.assertFalse(is_past(IN_REVIEW, IN_REVIEW))
        self.assertFalse(is_past(REJECTED, NEW))
        self.assertFalse(is_past(None, NEW))


class NormalizationTests(unittest.TestCase):
    def test_templates(self) -> None:
        self.assertEqual(normalize_template(" 003 "), TEMPLATE_OFFER)
        self.assertIsNone(normalize_template("004"))
        self.assertIsNone(normalize_template(None))

    def test_decisions(self) -> None:
        self.assertEqual(normalize_decision("ACCEPT"), "accept")
        self.assertIsNone(normalize_decision("maybe"))
        self.assertEqual(response_for_decision("accept"), RESPONSE_ACCEPTED)
        self.assertEqual(response_for_decision("decline"), RESPONSE_DECLINED)


if __name__ == "__main__":
    unittest.main()
