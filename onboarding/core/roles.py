from enum import Enum
from typing import Iterable


class Role(str, Enum):
    HR_ADMIN = "hr_admin"
    HR_EXEC = "hr_exec"
    VIEWER = "viewer"
    CANDIDATE = "candidate"


class Capability(str, Enum):
    VIEW_APPLICATIONS = "view_applications"
    MANAGE_APPLICATIONS = "manage_applications"


ROLE_CAPABILITIES: dict[Role, frozenset[Capability]] = {
    Role.HR_ADMIN: frozenset({Capability.VIEW_APPLICATIONS, Capability.MANAGE_APPLICATIONS}),
    Role.HR_EXEC: frozenset({Capability.VIEW_APPLICATIONS, Capability.MANAGE_APPLICATIONS}),
    Role.VIEWER: frozenset({Capability.VIEW_APPLICATIONS}),
    Role.CANDIDATE: frozenset(),
}

# Display names used for the role rows stored alongside accounts.
ROLE_NAMES: dict[Role, str] = {
    Role.HR_ADMIN: "HR Admin",
    Role.HR_EXEC: "HR Exec",
    Role.VIEWER: "Viewer",
    Role.CANDIDATE: "Candidate",
}


def parse_role(raw: str | None) -> Role | None:
    value = (raw or "").strip().lower().replace(" ", "_").replace("-", "_")
    if not value:
        return None
    try:
        return Role(value)
    except ValueError:
        return None


def role_allows(user_roles: Iterable[Role], capability: Capability) -> bool:
    required = Capability(capability)
    return any(required in ROLE_CAPABILITIES.get(Role(role), frozenset()) for role in user_roles)
