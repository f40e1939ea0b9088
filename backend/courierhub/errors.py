class CourierHubError(Exception):
    """Base for every error the workflow surfaces to callers."""

    status_code = 400

    def __init__(self, message: str = None):
        super().__init__(message or self.__class__.__doc__)
        self.message = message or self.__class__.__doc__


class ValidationError(CourierHubError):
    """Invalid input"""

    status_code = 400


class AuthenticationError(CourierHubError):
    """Unauthorized"""

    status_code = 401


class ForbiddenError(CourierHubError):
    """Forbidden"""

    status_code = 403


class NotFoundError(CourierHubError):
    """Not found"""

    status_code = 404


class InvalidTransitionError(CourierHubError):
    """Invalid status transition"""

    status_code = 409


class ConflictError(CourierHubError):
    """Conflicting concurrent update"""

    status_code = 409


class AlreadyCompletedError(CourierHubError):
    """Manifest already completed"""

    status_code = 409


class RateLimitedError(CourierHubError):
    """Too many attempts, try again later"""

    status_code = 429

    def __init__(self, message: str = None, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after
