"""Error taxonomy for marketplace operations.

Every error carries the HTTP status it maps to, so the single exception
handler registered in app.main can render it without a lookup table.
Gateway errors (NotFoundError, WriteError) propagate untouched through the
services; only the listing sorter degrades a failed founder lookup.
"""


class MarketplaceError(Exception):
    """Base class for all errors raised by the core."""

    status_code: int = 400
    kind: str = "marketplace_error"

    def __init__(self, detail: str = "") -> None:
        self.detail = detail or self.__class__.__doc__ or self.kind
        super().__init__(self.detail)


class ValidationError(MarketplaceError):
    """Malformed or incomplete input."""

    status_code = 422
    kind = "validation_error"


class AuthenticationRequiredError(MarketplaceError):
    """Operation requires a known identity."""

    status_code = 401
    kind = "authentication_required"


class ForbiddenError(MarketplaceError):
    """Caller is not allowed to act on this resource."""

    status_code = 403
    kind = "forbidden"


class NotFoundError(MarketplaceError):
    """Referenced record does not exist."""

    status_code = 404
    kind = "not_found"


class AlreadyPublishedError(MarketplaceError):
    """Product is already published."""

    status_code = 409
    kind = "already_published"


class EditNotAllowedError(MarketplaceError):
    """Published products cannot be edited."""

    status_code = 409
    kind = "edit_not_allowed"


class DuplicateReviewError(MarketplaceError):
    """Reviewer has already reviewed this product."""

    status_code = 409
    kind = "duplicate_review"


class WriteError(MarketplaceError):
    """Persistence write failed."""

    status_code = 502
    kind = "write_error"


class RecordDecodeError(MarketplaceError):
    """Stored record does not match its schema."""

    status_code = 500
    kind = "record_decode_error"
