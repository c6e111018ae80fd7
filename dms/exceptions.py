class DMSError(Exception):
    """Base class."""


class PreconditionFailed(DMSError):
    pass


class NotFoundError(DMSError):
    pass


class ForbiddenError(DMSError):
    """Access predicate denied the requester. Never shown as such to clients by default."""


class IOFailure(DMSError):
    """Filesystem copy, read or delete failed."""


class DataConsistencyWarning(UserWarning):
    """Record and filesystem disagree, but the operation can proceed."""
