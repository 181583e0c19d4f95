from app.models.activity_log import ActivityLog  # noqa: F401
from app.models.class_group import ClassGroup, SchoolClass  # noqa: F401
from app.models.classroom import Classroom  # noqa: F401
from app.models.subject import Subject  # noqa: F401
from app.models.teacher_profile import TeacherProfile  # noqa: F401
from app.models.term import Term  # noqa: F401
from app.models.timetable import Period, Timetable  # noqa: F401
from app.models.user import User, UserRole  # noqa: F401
