from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors. `title` is the headline shown to the operator."""

    title = "Error"

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


# Promotion / section reassignment

class MissingSelection(ServiceError):
    title = "Missing Information"

    def __init__(self, message: str = "Please select session, classes, and students to promote.") -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class DestinationSectionNotFound(ServiceError):
    title = "Destination Section Not Found"

    def __init__(self, class_name: str, section_identifier: str) -> None:
        super().__init__(
            f"Default section '{section_identifier}' not found for Class {class_name}. Please create it first.",
            status.HTTP_404_NOT_FOUND,
        )
        self.class_name = class_name
        self.section_identifier = section_identifier


class AtCeiling(ServiceError):
    title = "Cannot Promote"

    def __init__(self, class_name: str) -> None:
        super().__init__(f"Student is in the highest class (Class {class_name}).", status.HTTP_400_BAD_REQUEST)
        self.class_name = class_name


class CurrentSectionNotFound(ServiceError):
    title = "Current Section Not Found"

    def __init__(self, message: str = "Cannot find student's current class section.") -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class PromotionFailed(ServiceError):
    title = "Promotion Failed"

    def __init__(self, message: str = "An error occurred while promoting students.") -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)


# Delete guard

class HasDependents(ServiceError):
    title = "Cannot Delete"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class IsProtected(ServiceError):
    title = "Cannot Delete"

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_403_FORBIDDEN)


# Master data

class InvalidClassLabel(ServiceError, ValueError):
    title = "Invalid Class"

    def __init__(self, label: object) -> None:
        super().__init__(f"Unknown class label: {label!r}", status.HTTP_400_BAD_REQUEST)
        self.label = label


class DuplicateSection(ServiceError):
    title = "Duplicate Section"

    def __init__(self, class_name: str, section_identifier: str) -> None:
        super().__init__(
            f"Section '{section_identifier}' already exists for Class {class_name}",
            status.HTTP_409_CONFLICT,
        )


class NotFoundError(ServiceError):
    title = "Not Found"
    entity = "Record"

    def __init__(self, message: str = "") -> None:
        super().__init__(message or f"{self.entity} not found", status.HTTP_404_NOT_FOUND)


class StudentNotFound(NotFoundError):
    entity = "Student"


class SectionNotFound(NotFoundError):
    entity = "Section"


class DepartmentNotFound(NotFoundError):
    entity = "Department"


class StaffNotFound(NotFoundError):
    entity = "Staff member"


class ExamNotFound(NotFoundError):
    entity = "Exam"


class SubjectNotFound(NotFoundError):
    entity = "Subject"
