"""Domain exceptions shared by the pricing, order and dispatch layers.

Each exception carries the HTTP status the API layer answers with, so the
routers never have to translate them one by one.
"""


class DomainError(Exception):
    """Base class for every expected, user-facing failure"""
    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationFailed(DomainError):
    """Missing or inconsistent input; nothing was mutated"""
    status_code = 400


class CoordinatesRequired(ValidationFailed):
    """Cash-on-delivery needs a delivery pin"""

    def __init__(self, detail: str = "Delivery coordinates are required for cash on delivery"):
        super().__init__(detail)


class CartMixError(ValidationFailed):
    """More than one restaurant or more than one grocery in one order"""

    def __init__(self, detail: str = "Max 1 restaurant and 1 grocery per order"):
        super().__init__(detail)


class PromoRejected(ValidationFailed):
    """Promo code failed validation"""

    def __init__(self, reason: str):
        super().__init__(f"Promo rejected: {reason}")
        self.reason = reason


class DeliveryOutOfRange(ValidationFailed):
    """Delivery point is further than the service radius"""


class NotAuthorized(DomainError):
    """Actor may not perform this operation on this order"""
    status_code = 403


class OrderNotFound(DomainError):
    """Unknown order, or a customer phone that does not match it"""
    status_code = 404

    def __init__(self, detail: str = "Order not found"):
        super().__init__(detail)


class WindowExpired(DomainError):
    """The customer cancel/edit grace period has passed"""
    status_code = 400


class TransitionConflict(DomainError):
    """Transition rejected because of the order's current state"""
    status_code = 409


class AlreadyDecided(TransitionConflict):
    """Duplicate accept/reject, or an order already in a terminal state"""


class ExternalServiceError(DomainError):
    """Routing, geocoding or payment collaborator failed"""
    status_code = 502
