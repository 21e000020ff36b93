"""Exceptions for resmon.

Collection errors never leave a snapshot source: sources catch them and
degrade to an empty snapshot or a skipped record.
"""


class ResmonError(Exception):
    """Base class for resmon errors."""


class ConfigError(ResmonError, ValueError):
    """Invalid runtime configuration."""


class EnumerationUnavailable(ResmonError):
    """The process table could not be listed at all."""


class MalformedRecord(ResmonError):
    """An OS-provided process record could not be parsed."""
