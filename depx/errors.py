"""Exceptions raised by depx's I/O layer."""


class DepxError(Exception):
    """Base class for errors reported to the user."""


class LockfileError(DepxError):
    """A lockfile could not be read or parsed."""


class LockfileNotFoundError(LockfileError):
    """No supported lockfile exists in the project directory."""


class UnsupportedLockfileError(LockfileError):
    """A lockfile was found but its format is not supported yet."""


class AuditError(DepxError):
    """The vulnerability database could not be queried."""
