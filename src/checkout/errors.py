"""Checkout failures that are not plain validation errors.

Validation failures (missing shipping fields, missing payer phone, terms not
accepted, illegal step moves) raise ``protean.exceptions.ValidationError``.
The exceptions below cover the data-source and submission paths.
"""


class CheckoutError(Exception):
    """Base checkout exception"""


class EmptyCheckoutError(CheckoutError):
    """Nothing to check out. The caller should send the customer back to the cart."""

    redirect_to = "/cart"


class DataSourceError(CheckoutError):
    """The backend-of-record could not be reached or answered with an error."""


class SubmissionFailedError(CheckoutError):
    """The order could not be submitted. The session stays in confirmation."""


class SubmissionRejectedError(SubmissionFailedError):
    """The backend-of-record refused the order."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class SubmissionInProgressError(CheckoutError):
    """An order submission for this session is already in flight."""
