"""
Service exceptions

Every error raised by the service layer carries the HTTP status it maps to
and a machine-readable kind, so the API layer can render it uniformly.
"""
from typing import Optional


class ServiceError(Exception):
    """Base exception for Jewelry CRM errors"""

    status_code: int = 500
    kind: str = "service_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ServiceError):
    """Missing or malformed input"""

    status_code = 400
    kind = "validation_error"


class NotFoundError(ServiceError):
    """Unknown order, product, brand or status"""

    status_code = 404
    kind = "not_found"


class InsufficientStockError(ServiceError):
    """Requested quantity exceeds current stock"""

    status_code = 400
    kind = "insufficient_stock"

    def __init__(self, product_id: int, available: int, required: int, product_name: Optional[str] = None):
        self.product_id = product_id
        self.product_name = product_name
        self.available = available
        self.required = required
        label = product_name or f"product {product_id}"
        super().__init__(
            f"Insufficient stock for {label}. Available: {available}, Required: {required}"
        )


class InvalidTransitionError(ServiceError):
    """Status change not allowed from the order's current status"""

    status_code = 409
    kind = "invalid_transition"

    def __init__(self, current: str, target: str, reason: str):
        self.current = current
        self.target = target
        super().__init__(f"Cannot change order status from '{current}' to '{target}': {reason}")


class ConfigurationError(ServiceError):
    """Required reference data is missing"""

    kind = "configuration_error"


class StorageError(ServiceError):
    """Underlying persistence failure"""

    kind = "storage_error"

    def __init__(self, message: str, transient: bool = False):
        super().__init__(message)
        self.transient = transient


class ConcurrentUpdateError(StorageError):
    """Order status changed between read and write; safe to retry"""

    status_code = 409
    kind = "concurrent_update"

    def __init__(self, message: str):
        super().__init__(message, transient=True)
