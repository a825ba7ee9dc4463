class AppError(Exception):
    """Base class for all application exceptions."""
    def __init__(self, message: str, status_code: int = 500, details: dict = None):
        self.message = message
        self.status_code = status_code
        self.details = details or {}
        super().__init__(self.message)

class SchedulerError(AppError):
    """Raised when the scheduler is asked to work on a timetable in the wrong state."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=400, details=details)

class ResourceNotFoundError(AppError):
    """Raised when a requested resource is not found."""
    def __init__(self, resource_type: str, resource_id: str, message: str = None, details: dict = None):
        self.resource_type = resource_type
        self.resource_id = resource_id
        super().__init__(
            message or f"{resource_type} with id {resource_id} not found",
            status_code=404,
            details=details,
        )

class EmptyResourcePool(ResourceNotFoundError):
    """Raised when a department has no subjects, faculty or classrooms to schedule with."""
    MESSAGES = {
        "subjects": "No subjects found for this department",
        "faculty": "No faculty found for this department",
        "classrooms": "No classrooms available",
    }

    def __init__(self, pool: str, department: str):
        self.pool = pool
        self.department = department
        super().__init__(
            pool,
            department,
            message=self.MESSAGES.get(pool, f"No {pool} available"),
            details={"pool": pool, "department": department},
        )

class InvalidStateTransition(AppError):
    """Raised when a timetable status change is not an edge of the workflow."""
    def __init__(self, from_status: str, to_status: str, allowed: list[str] = None):
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Cannot change timetable status from {from_status} to {to_status}",
            status_code=409,
            details={"from_status": from_status, "to_status": to_status, "allowed": allowed or []},
        )

class PersistenceFailure(AppError):
    """Raised when the store rejects a slot batch; nothing from the batch is kept."""
    def __init__(self, message: str, details: dict = None):
        super().__init__(message, status_code=409, details=details)
