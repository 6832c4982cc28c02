from typing import Optional, Any


class MarketplaceError(Exception):
    """
    Base exception for the marketplace bot.
    """
    def __init__(self, message: str, code: str = "INTERNAL_ERROR", status_code: int = 500, details: Optional[Any] = None):
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details
        super().__init__(self.message)


class ValidationError(MarketplaceError):
    """
    Raised when user input at a flow step is invalid.
    The message is the corrective prompt shown to the user.
    """
    def __init__(self, message: str = "Validation error", details: Optional[Any] = None):
        super().__init__(message, code="VALIDATION_ERROR", status_code=422, details=details)


class NotFoundError(MarketplaceError):
    """
    Raised when a referenced product or user no longer exists
    (or is no longer in a state the operation accepts).
    """
    def __init__(self, message: str = "Resource not found", details: Optional[Any] = None):
        super().__init__(message, code="NOT_FOUND", status_code=404, details=details)


class AuthorizationError(MarketplaceError):
    """
    Raised when a non-admin invokes an admin-only control.
    """
    def __init__(self, message: str = "Access denied", details: Optional[Any] = None):
        super().__init__(message, code="ACCESS_DENIED", status_code=403, details=details)


class TransportError(MarketplaceError):
    """
    Raised when the Telegram Bot API rejects or fails a request.
    """
    def __init__(self, message: str = "Transport error", details: Optional[Any] = None):
        super().__init__(message, code="TRANSPORT_ERROR", status_code=502, details=details)


class StorageError(MarketplaceError):
    """
    Raised when the persistence layer is unavailable.
    """
    def __init__(self, message: str = "Storage unavailable", details: Optional[Any] = None):
        super().__init__(message, code="STORAGE_ERROR", status_code=503, details=details)
