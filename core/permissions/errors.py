"""
Error taxonomy for the edit-permission engine.

Engine functions raise these; the API boundary turns them into
``{'error': message}`` responses using ``status_code``.
"""


class EditPermissionError(Exception):
    """Base class for every failure the engine reports to callers."""

    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.message}


class Unauthorized(EditPermissionError):
    """No resolvable actor for the current request."""

    status_code = 401

    def __init__(self, message='Unauthorized'):
        super().__init__(message)


class PermissionDenied(EditPermissionError, PermissionError):
    """Role insufficient, or no active grant for the resource."""

    status_code = 403


class Conflict(EditPermissionError):
    """Another requester already holds a pending grant on the resource."""

    status_code = 409

    def __init__(self, message, holder_id=None):
        super().__init__(message)
        self.holder_id = holder_id


class NotFound(EditPermissionError, LookupError):
    """Grant or resource missing."""

    status_code = 404


class ValidationError(EditPermissionError, ValueError):
    """Malformed input, such as a draft payload that is not a field map."""

    status_code = 400
