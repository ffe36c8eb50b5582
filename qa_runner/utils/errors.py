"""
Error types raised by the QA runner.

Everything that can go wrong in the lifecycle or the publication pipeline is
raised as a StateInvalidError (or one of its subclasses) chained to the
low-level cause.
"""


class StateInvalidError(Exception):
    """Raised when the runner cannot continue from its current state."""
    pass


class ConfigurationError(StateInvalidError):
    """Raised when a required setting is missing or malformed."""
    pass


class FileNotStableError(StateInvalidError):
    """Raised when a file keeps changing past the allowed wait."""
    pass
