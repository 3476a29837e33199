from onboarding.db.base import Base
from onboarding.models.account import RecAccount, RecRole
from onboarding.models.application import RecApplication
from onboarding.models.document import RecApplicationDocument
from onboarding.models.email_log import RecApplicationEmailLog
from onboarding.models.job import RecJob
from onboarding.models.timeline import RecApplicationTimeline

__all__ = [
    "Base",
    "RecAccount",
    "RecApplication",
    "RecApplicationDocument",
    "RecApplicationEmailLog",
    "RecApplicationTimeline",
    "RecJob",
    "RecRole",
]
