from __future__ import annotations

import unittest

from sqlalchemy import select

from onboarding.models.account import RecAccount, RecRole
from onboarding.models.application import RecApplication
from onboarding.services.accounts import derive_candidate_password, ensure_candidate_account, verify_password


class PasswordDerivationTests(unittest.TestCase):
    def test_first_name_plus_suffix(self) -> None:
        application = RecApplication(applicant_name="Jane Doe", email="jane@mailbox.io")
        self.assertEqual(derive_candidate_password(application, "@team"), "jane@team")

    def test_non_alphanumerics_are_dropped(self) -> None:
        application = RecApplication(applicant_name="  Ana-María O'Neil", email="ana@mailbox.io")
        self.assertEqual(derive_candidate_password(application, "@team"), "anamara@team")

    def test_falls_back_to_email_then_placeholder(self) -> None:
        self.assertEqual(derive_candidate_password(RecApplication(applicant_name="", email="x.y@mailbox.io"), "!"), "xymailboxio!")
        self.assertEqual(derive_candidate_password(RecApplication(applicant_name="---", email=None), "!"), "candidate!")


async def test_creates_account_with_candidate_role(db_session, make_application, workflow_config):
    application = await make_application()

    provisioned = await ensure_candidate_account(db_session, application, config=workflow_config)

    candidate_role = (await db_session.execute(select(RecRole).where(RecRole.role_name == "Candidate"))).scalars().one()
    assert provisioned.created is True
    assert provisioned.password == "jane@team"
    assert provisioned.account.email == "jane.doe@mailbox.io"
    assert provisioned.account.role_id == candidate_role.role_id
    assert provisioned.account.password_hash != "jane@team"
    assert verify_password("jane@team", provisioned.account.password_hash)
    assert application.offer_account_id == provisioned.account.account_id


async def test_second_call_updates_existing_account(db_session, make_application, workflow_config):
    application = await make_application()
    first = await ensure_candidate_account(db_session, application, config=workflow_config)
    first_hash = first.account.password_hash

    second = await ensure_candidate_account(db_session, application, config=workflow_config)

    accounts = (await db_session.execute(select(RecAccount))).scalars().all()
    assert len(accounts) == 1
    assert second.created is False
    assert second.account.account_id == first.account.account_id
    assert second.account.password_hash != first_hash
    assert verify_password("jane@team", second.account.password_hash)


async def test_matches_existing_account_by_email(db_session, make_application, workflow_config):
    db_session.add(RecAccount(name="Jane", email="jane.doe@mailbox.io", role_name="Viewer", status="inactive"))
    await db_session.flush()
    application = await make_application(email="Jane.Doe@Mailbox.io")

    provisioned = await ensure_candidate_account(db_session, application, config=workflow_config)

    assert provisioned.created is False
    assert provisioned.account.role_name == "Candidate"
    assert provisioned.account.status == "active"


async def test_confirm_without_reset_keeps_password(db_session, make_application, workflow_config):
    application = await make_application()
    first = await ensure_candidate_account(db_session, application, config=workflow_config)
    original_hash = first.account.password_hash

    confirmed = await ensure_candidate_account(db_session, application, config=workflow_config, reset_password=False)

    assert confirmed.password is None
    assert confirmed.account.password_hash == original_hash


async def test_application_without_email_gets_no_account(db_session, make_application, workflow_config):
    application = await make_application(email=None)
    assert await ensure_candidate_account(db_session, application, config=workflow_config) is None
