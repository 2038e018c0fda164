from typing import Dict, Optional


class OrcaMaisError(Exception):
    """Base class for every error the application raises on purpose."""
    pass


class ValidationError(OrcaMaisError):
    """
    Raised when user input is malformed.

    Carries field-level messages so callers can show them next to
    the offending field.
    """

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors: Dict[str, str] = errors or {}


class NotFoundError(OrcaMaisError):
    """Raised when a transaction or dream id does not exist."""
    pass
