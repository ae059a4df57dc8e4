class StorefrontError(Exception):
    """Base for errors raised by the storefront services."""


class StoreError(StorefrontError):
    """Persistence failure: constraint violation, unreachable database."""


class NotFoundError(StorefrontError):
    pass


class ConflictError(StorefrontError):
    """Requested transition no longer matches the stored state."""


class InsufficientFundsError(ConflictError):
    pass


class InvalidRequestError(StorefrontError):
    """Input rejected before any side effect."""


class CheckoutValidationError(InvalidRequestError):
    pass


class PaymentFailedError(StorefrontError):
    def __init__(self, message: str, order_id=None):
        super().__init__(message)
        self.message = message
        self.order_id = order_id
