class DbFacError(Exception):
    """Base exception for configuration and usage errors"""


class NotStartedError(DbFacError):
    """Raised when the facility is used before start() or after stop()"""
