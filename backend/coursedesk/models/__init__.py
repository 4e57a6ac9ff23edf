# Importe tous les modèles pour enregistrer leurs tables dans Base.metadata
# avant que SQLAlchemy tente de résoudre les clés étrangères inter-modèles.

from coursedesk.models.user import User  # noqa: F401  doit précéder les profils
from coursedesk.models.student import StudentProfile, StudentEnrollment, AcademicRecord  # noqa: F401
from coursedesk.models.teacher import TeacherProfile, TeacherAvailability, TeacherCourse  # noqa: F401
from coursedesk.models.course import Course, CourseRosterEntry, CourseMaterial  # noqa: F401
from coursedesk.models.calendar_event import CalendarEvent, CalendarEventCourse  # noqa: F401
from coursedesk.models.conversation import (  # noqa: F401
    Conversation,
    ConversationParticipant,
    Message,
    MessageRead,
)
from coursedesk.models.report import Report, ReportAccessGrant  # noqa: F401
