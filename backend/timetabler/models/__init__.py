from timetabler.models.activity_log import ActivityLog  # noqa: F401
from timetabler.models.batch import Batch  # noqa: F401
from timetabler.models.classroom import Classroom, ClassroomType  # noqa: F401
from timetabler.models.faculty import Faculty  # noqa: F401
from timetabler.models.subject import Subject, SubjectType  # noqa: F401
from timetabler.models.timetable import (  # noqa: F401
    SlotType,
    Timetable,
    TimetableSlot,
    TimetableStatus,
)
from timetabler.models.user import User, UserRole  # noqa: F401
