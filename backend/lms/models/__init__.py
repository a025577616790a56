from lms.models.activity_log import ActivityLog  # noqa: F401
from lms.models.attendance import AbsentRecord, AttendanceRecord  # noqa: F401
from lms.models.faculty import EmploymentStatus, Faculty  # noqa: F401
from lms.models.handover import HandoverRequest, HandoverStatus  # noqa: F401
from lms.models.notification import (  # noqa: F401
    Announcement,
    AnnouncementStatus,
    Notification,
    NotificationType,
)
from lms.models.routine import Routine, RoutineState, RoutineType  # noqa: F401
from lms.models.user import User, UserRole  # noqa: F401
