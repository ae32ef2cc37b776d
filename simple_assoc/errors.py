class SimpleAssocError(Exception):
    """Base class for every error raised by simple_assoc."""


class AssociationConfigError(SimpleAssocError, ValueError):
    """An association could not be defined.

    Raised while the association is being built or installed, never when a
    getter or setter runs.
    """


class LoadError(SimpleAssocError):
    """A data source failed to read records for a store."""

    def __init__(self, message, operation=None, cause=None):
        super().__init__(message)
        self.operation = operation
        self.cause = cause
