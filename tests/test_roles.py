from __future__ import annotations

import unittest

from onboarding.core.roles import Capability, Role, parse_role, role_allows


class RolePolicyTests(unittest.TestCase):
    def test_managers_can_view_and_manage(self) -> None:
        for role in (Role.HR_ADMIN, Role.HR_EXEC):
            self.assertTrue(role_allows([role], Capability.VIEW_APPLICATIONS))
            self.assertTrue(role_allows([role], Capability.MANAGE_APPLICATIONS))

    def test_viewer_is_read_only(self) -> None:
        self.assertTrue(role_allows([Role.VIEWER], Capability.VIEW_APPLICATIONS))
        self.assertFalse(role_allows([Role.VIEWER], Capability.MANAGE_APPLICATIONS))

    def test_candidate_has_no_staff_access(self) -> None:
        self.assertFalse(role_allows([Role.CANDIDATE], Capability.VIEW_APPLICATIONS))
        self.assertFalse(role_allows([], Capability.VIEW_APPLICATIONS))

    def test_any_role_granting_capability_is_enough(self) -> None:
        self.assertTrue(role_allows([Role.VIEWER, Role.HR_EXEC], Capability.MANAGE_APPLICATIONS))

    def test_parse_role_accepts_display_names(self) -> None:
        self.assertEqual(parse_role("HR Admin"), Role.HR_ADMIN)
        self.assertEqual(parse_role("hr-exec"), Role.HR_EXEC)
        self.assertEqual(parse_role(" viewer "), Role.VIEWER)
        self.assertIsNone(parse_role("superuser"))
        self.assertIsNone(parse_role(None))


if __name__ == "__main__":
    unittest.main()
