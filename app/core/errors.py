from typing import Any, Dict, List, Optional


class CalendarError(Exception):
    """Base class for errors surfaced to request-path callers."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def to_dict(self) -> Dict[str, Any]:
        return {"status": "error", "message": self.message}


class ValidationError(CalendarError):
    """Malformed or out-of-range input, with optional field-level messages."""

    status_code = 400

    def __init__(self, message: str, errors: Optional[List[Dict[str, str]]] = None):
        super().__init__(message)
        self.errors = errors or []

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        if self.errors:
            payload["errors"] = self.errors
        return payload


class NotFoundError(CalendarError):
    """The id does not exist or is not owned by the caller."""

    status_code = 404

    def __init__(self, message: str = "Event not found"):
        super().__init__(message)


class ConflictError(CalendarError):
    # Reserved for uniqueness constraints.
    status_code = 409


class TransientStoreError(CalendarError):
    """Infrastructure failure talking to the store; safe to retry."""

    status_code = 503

    def __init__(self, message: str = "Event store unavailable"):
        super().__init__(message)


class AuthenticationError(CalendarError):
    status_code = 401

    def __init__(self, message: str = "Not authorized"):
        super().__init__(message)


def field_errors_from_pydantic(exc) -> List[Dict[str, str]]:
    """Flatten a pydantic ValidationError into [{field, message}] entries."""
    errors = []
    for err in exc.errors():
        loc = [str(part) for part in err.get("loc", ()) if part not in ("body", "query", "path")]
        errors.append({"field": ".".join(loc) or "body", "message": err.get("msg", "Invalid value")})
    return errors
