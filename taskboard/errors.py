class TaskError(Exception):
    """Base error for task operations. Carries a user-facing message."""

    def __init__(self, message: str = "Task operation failed"):
        super().__init__(message)
        self.message = message


class ValidationError(TaskError):
    pass


class NotFound(TaskError):
    def __init__(self, message: str = "Task not found"):
        super().__init__(message)


class TransientIOError(TaskError):
    """Network or database unreachable. Safe to retry later."""

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


def format_validation_errors(details) -> str:
    """Flatten pydantic error dicts into one readable line."""
    parts = []
    for err in details:
        loc = ".".join(str(p) for p in err.get("loc", ()) if p not in ("body", "path", "query"))
        msg = err.get("msg", "Invalid value")
        parts.append(f"{loc}: {msg}" if loc else msg)
    return "; ".join(parts) or "Invalid request"
