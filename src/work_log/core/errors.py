"""Error types raised by the record stores and the tracker."""


class WorkLogError(Exception):
    """Base class for work log errors."""

    pass


class NotConfiguredError(WorkLogError):
    """No database credentials are set or no connection is open."""

    pass


class SchemaMissingError(WorkLogError):
    """The remote records table does not exist."""

    pass


class ChannelError(WorkLogError):
    """The live-update channel failed to start or dropped."""

    pass


class StorageFault(WorkLogError):
    """Generic persistence failure (local medium or database)."""

    pass


class NetworkFault(StorageFault):
    """The database could not be reached or the connection broke."""

    pass


class RecordNotFoundError(WorkLogError):
    """No record exists with the requested id."""

    pass


class RecordValidationError(ValueError):
    """Record input failed validation."""

    pass


class DuplicateDateError(RecordValidationError):
    """The developer already has a record for this date."""

    pass
