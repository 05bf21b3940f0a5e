# services/errors.py
"""
Scheduling and attendance error types.
Every error is local, synchronous and non-retryable; controllers turn them into JSON responses.
"""


class SchedulingError(Exception):
    """Base class for errors raised by the scheduling and attendance services."""

    status_code = 400
    default_code = 'scheduling_error'

    def __init__(self, message, error_code=None, field=None):
        super().__init__(message)
        self.message = message
        self.error_code = error_code or self.default_code
        self.field = field

    def to_dict(self):
        result = {
            'success': False,
            'message': self.message,
            'error_code': self.error_code
        }
        if self.field:
            result['field'] = self.field
        return result


class ValidationError(SchedulingError):
    """Malformed input: bad HH:MM strings, inverted date ranges, missing fields."""
    status_code = 400
    default_code = 'validation_error'


class NotFound(SchedulingError):
    """Referenced object is missing or not owned by the acting trainer."""
    status_code = 404
    default_code = 'not_found'


class InvalidTransition(SchedulingError):
    """Lifecycle action attempted from a state that forbids it."""
    status_code = 409
    default_code = 'invalid_transition'


class ImmutableRecord(SchedulingError):
    """Content edit attempted on a completed session."""
    status_code = 409
    default_code = 'immutable_record'
