from enum import Enum


class StudentStatus(str, Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"


class TimelineEventType(str, Enum):
    ADMISSION = "ADMISSION"
    PROMOTION = "PROMOTION"
    EXAM_RESULT = "EXAM_RESULT"
    CLASS_ASSIGNMENT = "CLASS_ASSIGNMENT"
    STATUS_CHANGE = "STATUS_CHANGE"


class DepartmentType(str, Enum):
    ACADEMIC = "Academic"
    NON_ACADEMIC = "Non-Academic"
    VOCATIONAL = "Vocational"


class UserRole(str, Enum):
    ADMIN = "ADMIN"
    TEACHER = "TEACHER"
    INCHARGE = "INCHARGE"


class Severity(str, Enum):
    SUCCESS = "success"
    INFO = "info"
    DESTRUCTIVE = "destructive"
