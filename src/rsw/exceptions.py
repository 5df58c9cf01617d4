"""Custom exceptions for the rsw package."""


class RswError(Exception):
    """Base exception for all rsw errors."""
    pass


class ConfigError(RswError):
    """The rsw.toml configuration is missing, unreadable or invalid."""
    pass


class CrateRootNotFoundError(RswError):
    """A crate source directory does not exist or is not a directory."""
    pass


class WatchAlreadyRunningError(RswError):
    """Watch engine is already running."""
    pass
