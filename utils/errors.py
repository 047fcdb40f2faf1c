"""Error types raised by the extraction engine and the review scheduler."""


class TadokuError(Exception):
    """Base class for engine errors."""


class AnalysisUnavailable(TadokuError):
    """The text-generation collaborator failed, timed out or returned nothing."""


class ValidationError(TadokuError):
    """A collaborator response could not be turned into the minimum required shape."""


class NotFoundError(TadokuError):
    """An operation referenced a user, word or document that does not exist."""


class PersistenceError(TadokuError):
    """A storage operation failed and its transaction was rolled back."""
