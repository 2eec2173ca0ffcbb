"""Custom exceptions for twirl."""


class TwirlError(Exception):
    """Base exception for twirl."""

    pass


class InvalidPatternError(TwirlError):
    """Raised when a document cannot evaluate a query pattern."""

    def __init__(self, pattern: str, reason: str = ""):
        self.pattern = pattern
        self.reason = reason
        super().__init__(f"Invalid query pattern: {pattern}" + (f" ({reason})" if reason else ""))


class ExtractorError(TwirlError):
    """Raised when a single extraction attempt fails."""

    def __init__(self, message: str, platform: str = ""):
        self.platform = platform
        super().__init__(message)


class HostUnavailableError(TwirlError):
    """Raised when the persistence collaborator cannot be reached."""

    pass


class MalformedInputError(TwirlError):
    """Raised when record or paste data is missing required fields."""

    pass


class MalformedRecordError(MalformedInputError):
    """Raised when a stored conversation record cannot be decoded."""

    def __init__(self, message: str, record_id: str = ""):
        self.record_id = record_id
        super().__init__(message)


class ConfigError(TwirlError):
    """Raised for configuration errors."""

    pass


class PathTraversalError(ConfigError):
    """Raised when path traversal attack is detected."""

    def __init__(self, path: str, allowed_base: str = ""):
        self.path = path
        self.allowed_base = allowed_base
        super().__init__(f"Path traversal detected: {path}")
