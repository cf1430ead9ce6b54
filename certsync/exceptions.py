"""Base exception shared by all certsync subsystems."""


class CertSyncError(Exception):
    """Base exception for certsync operations.

    Attributes:
        code: Error code string for categorization
        message: Human-readable error message
    """

    def __init__(self, code: str, message: str):
        self.code = code
        self.message = message
        super().__init__(message)
