class AppError(Exception):
    """Base class for all application exceptions."""
    retryable: bool = False

    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)


class ValidationError(AppError):
    """Raised when a period or interval is malformed (bad day, bad window, bad duration)."""
    def __init__(self, message: str, field: str | None = None):
        details = {"field": field} if field else {}
        super().__init__(message, status_code=422, details=details)


class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(
            f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details={"resource_type": resource_type, "resource_id": resource_id},
        )


class TeacherProfileNotFound(AppError):
    """Raised when a period references a teacher user without a teacher profile."""
    def __init__(self, teacher_id: str):
        self.teacher_id = teacher_id
        super().__init__(
            f"Teacher profile not found for teacher ID {teacher_id}",
            status_code=404,
            details={"teacher_id": teacher_id},
        )


class ConflictError(AppError):
    """Raised when a candidate period double-books a teacher or a classroom."""
    def __init__(self, kind: str, message: str, candidate: dict, existing: dict):
        self.kind = kind
        self.candidate = candidate
        self.existing = existing
        super().__init__(
            message,
            status_code=409,
            details={"kind": kind, "candidate": candidate, "existing": existing},
        )


class UniquenessError(AppError):
    """Raised when a timetable already exists for a (term, class group, class) triple."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)


class PersistenceError(AppError):
    """Raised when the store fails a transaction; nothing was committed, so the caller may retry."""
    retryable = True

    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=503, details=details)
