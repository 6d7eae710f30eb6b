class BaseServiceError(Exception):
    """Base exception for all service-related errors."""
    pass


class NotFoundError(BaseServiceError):
    """Raised when a requested record does not exist."""
    pass


class ProductNotFoundError(NotFoundError):
    """Raised when product is not found."""

    def __init__(self, product_id):
        self.product_id = product_id
        super().__init__(f"Product with ID {product_id} not found")


class ConflictNotFoundError(NotFoundError):
    """Raised when a sync conflict is not found."""

    def __init__(self, conflict_id):
        self.conflict_id = conflict_id
        super().__init__(f"SyncConflict with ID {conflict_id} not found")


class FailedPreconditionError(BaseServiceError):
    """Raised when an operation is not allowed in the record's current state."""
    pass


class ValidationError(BaseServiceError):
    """Raised when data validation fails."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")


class DuplicatePendingConflictError(BaseServiceError):
    """Raised when a pending conflict already exists for the same subject, type and system."""
    pass


class ExternalSystemError(Exception):
    """Base exception for failures talking to an external commerce system."""
    pass


class SquareAPIError(ExternalSystemError):
    """Raised when Square API calls fail."""

    def __init__(self, message: str, status_code: int = None):
        self.status_code = status_code
        super().__init__(message)


class CatalogVersionMismatchError(SquareAPIError):
    """Raised when a catalog write carries a stale version token."""
    pass


class WebhookSignatureError(Exception):
    """Raised when a webhook signature is missing or does not match."""
    pass
