"""
Exception hierarchy for document export, persistence and email delivery.

Every error carries a human-readable message plus keyword context, and can be
serialized for logging or API responses with ``to_dict()``.
"""


class InvoiceMaxError(Exception):
    """
    Base exception for all InvoiceMax errors.

    Args:
        message: The error message shown to the user
        **kwargs: Additional context (document number, user id, category, ...)
    """

    status_code = 500

    def __init__(self, message: str, **kwargs):
        super().__init__(message)
        self.message = message
        self.context = kwargs

    def __str__(self):
        return self.message

    def to_dict(self):
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
        }


class PreviewNotFound(InvoiceMaxError):
    """No rendered preview node exists on the board. Render the preview first."""

    status_code = 404

    def __init__(self, message: str = "Preview element not found", **kwargs):
        super().__init__(message, **kwargs)


class CanvasContextUnavailable(InvoiceMaxError):
    """A page slice could not acquire a drawing surface."""

    status_code = 500


class ExportFailed(InvoiceMaxError):
    """
    Rasterization or encoding failed.

    The underlying exception is kept on ``cause`` (and as ``__cause__`` when
    raised with ``from``) so it can be logged; the message stays generic.
    """

    status_code = 500

    def __init__(self, message: str = "Failed to generate PDF. Please try again.", cause: Exception | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.cause = cause

    def to_dict(self):
        data = super().to_dict()
        if self.cause is not None:
            data["cause"] = repr(self.cause)
        return data


class ExportInProgress(InvoiceMaxError):
    """Another export is already using this preview board."""

    status_code = 409

    def __init__(self, message: str = "An export is already in progress. Please wait for it to finish.", **kwargs):
        super().__init__(message, **kwargs)


class ValidationError(InvoiceMaxError):
    """Field-level validation failure raised before any persistence attempt."""

    status_code = 422

    def __init__(self, message: str, errors: list[dict] | None = None, **kwargs):
        super().__init__(message, **kwargs)
        self.errors = errors or []

    def to_dict(self):
        data = super().to_dict()
        data["errors"] = self.errors
        return data


class RecordNotFound(InvoiceMaxError):
    status_code = 404


class SaveFailed(InvoiceMaxError):
    """
    Autosaved edits could not be written to storage.

    The edits are still buffered; ``failures`` in the context names what is
    unsaved so the caller can retry with another flush.
    """

    status_code = 503

    def __init__(self, message: str = "Some changes could not be saved. Your edits are kept; please try saving again.", **kwargs):
        super().__init__(message, **kwargs)


class EmailDeliveryError(InvoiceMaxError):
    """
    Email could not be delivered.

    ``category`` is one of: misconfigured, sandbox_restricted,
    oversized_attachment, malformed_attachment, generic.
    """

    STATUS_BY_CATEGORY = {
        "misconfigured": 500,
        "sandbox_restricted": 400,
        "oversized_attachment": 413,
        "malformed_attachment": 400,
        "generic": 502,
    }

    def __init__(self, message: str, category: str = "generic", **kwargs):
        super().__init__(message, category=category, **kwargs)
        self.category = category
        self.status_code = self.STATUS_BY_CATEGORY.get(category, 502)
