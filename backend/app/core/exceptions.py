class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class ScheduleValidationError(AppError):
    """Raised when submitted schedule items are malformed or overlap each other."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=422, details=details)

class ScheduleConflictError(AppError):
    """Raised when a schedule overlaps committed slots of a teacher or student.

    ``conflicts`` holds one serialized report per affected subject.
    """
    def __init__(self, message: str, conflicts: list[dict], kind: str):
        self.conflicts = conflicts
        self.kind = kind
        super().__init__(message, status_code=409, details={"kind": kind, "conflicts": conflicts})

class ClassStatusTransitionError(AppError):
    """Raised when a status change is not allowed by the transition table."""
    def __init__(self, from_status: str, to_status: str):
        super().__init__(
            f"Cannot change class status from {from_status} to {to_status}",
            status_code=400,
            details={"from": from_status, "to": to_status},
        )

class GracePeriodExpiredError(AppError):
    """Raised when reactivating a finished or canceled class after the grace period."""
    def __init__(self, from_status: str, grace_period_hours: int):
        super().__init__(
            f"Classes in {from_status} can only be reactivated within {grace_period_hours} hours",
            status_code=400,
            details={"from": from_status, "grace_period_hours": grace_period_hours},
        )

class BusinessRuleError(AppError):
    """Raised when a request breaks a domain rule outside scheduling and lifecycle."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str):
        super().__init__(f"{resource_type} with id {resource_id} not found", status_code=404)

class ConfigurationError(AppError):
    """Raised when system configuration is invalid."""
    def __init__(self, message: str):
        super().__init__(message, status_code=500)
