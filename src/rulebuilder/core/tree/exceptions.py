"""Exceptions and advisory findings for the rule tree engine."""

from dataclasses import dataclass


class RuleTreeError(Exception):
    """Base class for all rule tree errors."""
    pass


class ConfigurationError(RuleTreeError):
    """Raised when a required editor configuration value is missing."""

    def __init__(self, message: str, key: str | None = None):
        self.key = key
        super().__init__(message)


class LoadError(RuleTreeError):
    """Raised when a referenced rule cannot be searched for or loaded."""

    def __init__(self, message: str, uuid: str | None = None, version: int | str | None = None):
        self.uuid = uuid
        self.version = version
        super().__init__(message)


class StructuralInvariantError(RuleTreeError):
    """Raised when a tree shape cannot be represented (e.g. an empty group)."""

    def __init__(self, message: str, path: str | None = None):
        self.path = path
        super().__init__(f"{message} at {path}" if path is not None else message)


class UnknownNodeError(RuleTreeError):
    """Raised when a serialized node carries an unrecognised type tag."""
    pass


@dataclass(frozen=True)
class ValidationWarning:
    """A finding attached to a node path; never blocks further editing.

    Attributes:
        code: ``internal_mismatch`` or ``context_mismatch``.
        path: Path of the node the finding belongs to.
        message: Human-readable description.
        blocking: True when the finding is surfaced to the user as blocking;
            editing and saving still proceed.
    """

    code: str
    path: str
    message: str
    blocking: bool = False
