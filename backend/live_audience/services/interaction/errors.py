from typing import Any, Dict, Iterable, Optional


class InteractionError(Exception):
    """Base error for a single failed operation; never fatal to the engine."""

    status_code = 400

    def __init__(self, message: str, payload: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.payload = payload or {}

    def to_dict(self) -> Dict[str, Any]:
        body = dict(self.payload)
        body['error'] = self.message
        return body


class ValidationError(InteractionError):
    status_code = 400


class MissingFieldsError(ValidationError):
    def __init__(self, missing: Iterable[str]):
        self.missing_fields = list(missing)
        super().__init__(
            f"Missing required field(s): {', '.join(self.missing_fields)}",
            {'missing_fields': self.missing_fields},
        )


class DuplicateSubmissionError(InteractionError):
    status_code = 409


class NotFound(InteractionError):
    status_code = 404
