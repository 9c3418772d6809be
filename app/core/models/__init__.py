from app.core.models.tenant import Tenant
from app.core.models.department import Department
from app.core.models.staff import Staff
from app.core.models.class_section import ClassSection
from app.core.models.student import Student
from app.core.models.timeline_event import TimelineEvent
from app.core.models.exam import Exam, Subject
from app.core.models.performance_record import PerformanceRecord, performance_record_id

__all__ = [
    "ClassSection",
    "Department",
    "Exam",
    "PerformanceRecord",
    "Staff",
    "Student",
    "Subject",
    "Tenant",
    "TimelineEvent",
    "performance_record_id",
]
