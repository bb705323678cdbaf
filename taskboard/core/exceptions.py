"""
Platform-wide exception hierarchy.

Services raise these; the app factory registers one handler per type so
every blueprint gets the same HTTP status and error body.

Usage:
    from taskboard.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Sprint", resource_id=42)
    raise ValidationError("title is required", details={"title": "missing"})
"""


class NotFoundError(Exception):
    """Raised when a referenced Task, Sprint, User or Attachment does not exist.

    Args:
        resource: Human-readable entity name (e.g. "Task", "Attachment").
        resource_id: The PK that was looked up.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input violates a field or business rule.

    Nothing has been mutated when this is raised.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown, keyed by field name.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStatusError(ValidationError):
    """Raised when a task status is outside the enumerated set."""

    def __init__(self, status, allowed) -> None:
        self.status = status
        self.allowed = sorted(allowed)
        super().__init__(
            f"Invalid status {status!r}. Must be one of: {', '.join(self.allowed)}",
            details={"status": status},
        )


class InvalidTransitionError(Exception):
    """Raised when the active transition policy forbids a status edge."""

    def __init__(self, task_id: int, current: str, target: str, allowed) -> None:
        self.task_id = task_id
        self.current_status = current
        self.target_status = target
        self.allowed = sorted(allowed)
        msg = (
            f"Invalid transition for task {task_id}: {current} → {target}. "
            f"Allowed: {', '.join(self.allowed) or 'none'}"
        )
        super().__init__(msg)


class ConflictError(Exception):
    """Raised when a concurrent writer already changed the aggregate.

    Maps to HTTP 409. The caller should re-read and retry.

    Args:
        resource: Model name.
        resource_id: PK of the aggregate.
        expected_version: Version the caller based its write on (if known).
        actual_version: Version currently stored (if known).
    """

    def __init__(
        self,
        resource: str,
        resource_id: int | str,
        expected_version: int | None = None,
        actual_version: int | None = None,
    ) -> None:
        self.resource = resource
        self.resource_id = resource_id
        self.expected_version = expected_version
        self.actual_version = actual_version
        msg = f"{resource} id={resource_id} was modified concurrently"
        if expected_version is not None and actual_version is not None:
            msg += f" (expected version {expected_version}, found {actual_version})"
        super().__init__(msg)


class AuthenticationError(Exception):
    """Raised when the request carries no usable bearer token."""

    def __init__(self, message: str = "Authentication required") -> None:
        super().__init__(message)


class AuthorizationError(Exception):
    """Raised when the authenticated user lacks the role for an action."""

    def __init__(self, message: str = "Access denied: insufficient permissions") -> None:
        super().__init__(message)
