class WorkflowError(Exception):
    """Base class for every error the approval workflow raises."""
    status_code = 400

    def __init__(self, message=None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__

    def to_dict(self):
        return {'error': self.__class__.__name__, 'message': self.message}


class ValidationError(WorkflowError):
    """Submitted request attributes are invalid."""
    status_code = 400

    def __init__(self, message=None, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        data = super().to_dict()
        data['errors'] = self.errors
        return data


class NotFoundError(WorkflowError):
    """Unknown request or actor."""
    status_code = 404


class UnauthorizedActionError(WorkflowError):
    """Actor is not allowed to perform this action."""
    status_code = 403


class InvalidTransitionError(WorkflowError):
    """Action is not valid for the request's current state."""
    status_code = 409


class ConcurrentModificationError(WorkflowError):
    """Request was modified concurrently; re-read and retry."""
    status_code = 409


class IdExhaustionError(WorkflowError):
    """Unable to generate unique request ID after maximum attempts."""
    status_code = 503
