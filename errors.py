"""
Error taxonomy for the journal core.

The core only ever raises these two kinds. Storage and transport failures
belong to the layers around it and keep their own exception types.
"""


class JournalError(Exception):
    """Base class for errors raised by the journal core."""


class ValidationError(JournalError, ValueError):
    """Input is malformed or violates a field constraint."""


class NotFoundError(JournalError, LookupError):
    """Referenced trade or goal does not exist for the calling user."""
