"""Domain errors raised by the purchase, delivery and publishing services.

Each error carries the HTTP status the API answers with, so routes can
stay thin and a single handler in ``app.main`` does the translation.
"""
from typing import Optional


class AfriWriteError(Exception):
    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


class NotFound(AfriWriteError):
    status_code = 404
    default_message = "Not found"


class Unauthenticated(AfriWriteError):
    status_code = 401
    default_message = "Authentication required"


class Forbidden(AfriWriteError):
    status_code = 403
    default_message = "You do not own this book"


class NotReady(AfriWriteError):
    """Entitled, but the personalised copy has not been written yet."""

    status_code = 409
    default_message = "Your copy is not ready yet, please retry the purchase"


class InvalidUpload(AfriWriteError):
    status_code = 400
    default_message = "Invalid upload"


class DerivationError(AfriWriteError):
    default_message = "Could not prepare the watermarked copy"


class CorruptSource(DerivationError):
    default_message = "Source document is not a readable PDF"


class EncodingError(DerivationError):
    default_message = "Watermark text cannot be rendered"


class StorageFailure(AfriWriteError):
    default_message = "Storage I/O failed"


class PurchaseFailed(AfriWriteError):
    """The order is recorded but its artifact could not be produced."""

    default_message = "Purchase could not be completed"

    def __init__(self, order_id: int, cause: Exception):
        super().__init__(self.default_message)
        self.order_id = order_id
        self.cause = cause
