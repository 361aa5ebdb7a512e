from tutordesk.models.availability import StudentDailyAvailability, TeacherDailyAvailability  # noqa: F401
from tutordesk.models.people import Student, Teacher  # noqa: F401
from tutordesk.models.schedule import CourseArrangement  # noqa: F401
