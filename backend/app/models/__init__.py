from app.models.academic_class import AcademicClass, ClassStatus  # noqa: F401
from app.models.center import Center  # noqa: F401
from app.models.group import Group, GroupStudent  # noqa: F401
from app.models.schedule_item import DayOfWeek, ScheduleItem  # noqa: F401
from app.models.user_profile import ProfileType, UserProfile  # noqa: F401
