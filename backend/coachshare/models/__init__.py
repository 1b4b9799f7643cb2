# Import all models so Base.metadata is populated before create_all.
from coachshare.models.user import User  # noqa: F401
from coachshare.models.session import Session  # noqa: F401
from coachshare.models.audit import AuditLogEvent  # noqa: F401
from coachshare.models.regimen import Regimen  # noqa: F401
from coachshare.models.workout_log import WorkoutLog  # noqa: F401
from coachshare.models.notification import Notification  # noqa: F401
