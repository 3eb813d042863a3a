"""Settlement failures that are not plain validation errors."""


class SettlementError(Exception):
    """Base settlement exception"""


class CartMismatchError(SettlementError):
    """The submitted order lines differ from the customer's stored cart."""
