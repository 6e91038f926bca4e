"""Error taxonomy shared by the directory, repository and workflow."""


class DocSpotError(Exception):
    """Base class; str(error) is safe to show to the user."""

    default_message = 'Something went wrong. Please try again.'

    def __init__(self, message=None):
        super().__init__(message or self.default_message)


class ValidationError(DocSpotError):
    """Malformed or disallowed input, e.g. booking an unapproved doctor."""

    default_message = 'The request is not valid.'


class NotFoundError(DocSpotError):
    default_message = 'The requested record was not found.'


class InvalidTransitionError(DocSpotError):
    """Status change not permitted for this record and actor."""

    default_message = 'This status change is not allowed.'

    def __init__(self, message=None, current=None, target=None, role=None):
        super().__init__(message)
        self.current = current
        self.target = target
        self.role = role


class RemoteError(DocSpotError):
    """The database or the auth backend failed to answer."""

    default_message = 'The service is temporarily unavailable. Please try again.'
