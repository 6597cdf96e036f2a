"""Error taxonomy shared by the checkout, webhook and admin paths.

Every error carries the HTTP status it maps to and a short machine-readable
``code``. Routers let these propagate; ``storefront.main`` renders them as
``{"detail": ..., "code": ...}``. The webhook path catches the business
errors itself, because the processor must still get an acknowledgement.
"""

from fastapi import status


class StorefrontError(Exception):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "storefront_error"

    def __init__(self, message: str | None = None):
        self.message = message or self.__class__.__doc__ or self.code
        super().__init__(self.message)


class ValidationError(StorefrontError):
    """Request payload is malformed or incomplete."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "validation_error"


class InvalidCountryCode(ValidationError):
    """Invalid country code (must be ISO-3166-1 alpha-2)."""

    code = "invalid_country_code"


class MissingCorrelationKey(ValidationError):
    """Event carries no usable checkout correlation key."""

    code = "missing_correlation_key"


class NotFoundError(StorefrontError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class ItemNotFound(NotFoundError):
    code = "item_not_found"


class OrderNotFound(NotFoundError):
    """Order not found."""

    code = "order_not_found"


class ConflictError(StorefrontError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class ItemUnavailable(ConflictError):
    code = "item_unavailable"


class TotalMismatch(ConflictError):
    """Total amount mismatch."""

    code = "total_mismatch"


class ItemInUse(ConflictError):
    code = "item_in_use"


class AuthenticationError(StorefrontError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "authentication_failed"


class SignatureInvalid(AuthenticationError):
    """Invalid webhook signature."""

    # Stripe treats any 4xx as a permanent rejection; 400 is what it documents.
    status_code = status.HTTP_400_BAD_REQUEST
    code = "signature_invalid"


class PaymentProcessorError(StorefrontError):
    """Payment initialization failed."""

    status_code = status.HTTP_502_BAD_GATEWAY
    code = "payment_processor_error"


class TransientStoreError(StorefrontError):
    """Database is temporarily unavailable."""

    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "transient_store_error"


class FatalInvariantViolation(StorefrontError):
    code = "invariant_violation"


class SnapshotNotFound(FatalInvariantViolation):
    """Payment record not found."""

    code = "snapshot_not_found"
