"""Domain errors raised by the order, wallet and group-buy services.

Every error carries a stable ``code`` and the HTTP status the API layer
answers with. Messages are meant to be shown to the user as-is.
"""

from decimal import Decimal


class MarketplaceError(Exception):
    """Base class for all domain errors."""

    code = "MARKETPLACE_ERROR"
    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFound(MarketplaceError):
    code = "NOT_FOUND"
    status_code = 404


class Unauthorized(MarketplaceError):
    """The actor does not own the record it is acting on."""

    code = "UNAUTHORIZED"
    status_code = 403


class InvalidState(MarketplaceError):
    code = "INVALID_STATE"
    status_code = 409


class InvalidRequest(MarketplaceError):
    code = "INVALID_REQUEST"
    status_code = 400


class InsufficientStock(MarketplaceError):
    code = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id, product_name: str, available: int):
        super().__init__(f"Insufficient stock for {product_name}. Available: {available}")
        self.product_id = product_id
        self.product_name = product_name
        self.available = available


class InsufficientFunds(MarketplaceError):
    code = "INSUFFICIENT_FUNDS"
    status_code = 402

    def __init__(self, available: Decimal, requested: Decimal):
        super().__init__(f"Insufficient funds. Available: {available}, requested: {requested}")
        self.available = available
        self.requested = requested


class Expired(MarketplaceError):
    code = "EXPIRED"
    status_code = 410


class MemberLimitReached(MarketplaceError):
    code = "MEMBER_LIMIT_REACHED"
    status_code = 409

    def __init__(self, max_members: int):
        super().__init__(f"Group order is full. Maximum {max_members} members allowed.")
        self.max_members = max_members


class InsufficientMembers(MarketplaceError):
    code = "INSUFFICIENT_MEMBERS"
    status_code = 409

    def __init__(self, required: int, actual: int):
        super().__init__(
            f"Minimum {required} members required. Currently have {actual} members."
        )
        self.required = required
        self.actual = actual


class MinimumQuantityNotMet(MarketplaceError):
    code = "MINIMUM_QUANTITY_NOT_MET"
    status_code = 409

    def __init__(self, product_id, product_name: str):
        super().__init__(f"Minimum quantity not met for: {product_name}")
        self.product_id = product_id
        self.product_name = product_name


class LeaderCannotLeave(MarketplaceError):
    code = "LEADER_CANNOT_LEAVE"
    status_code = 409

    def __init__(self, message: str = "The group order leader cannot leave the group order"):
        super().__init__(message)


class ConcurrencyError(MarketplaceError):
    """Raised when an atomic unit keeps conflicting after bounded retries."""

    code = "CONCURRENT_UPDATE"
    status_code = 409
