# storefront/domain/errors.py
from typing import Any, Dict, List


class StorefrontError(Exception):
    """Bazowy blad domenowy, mapowany na odpowiedz HTTP w main.py."""

    status_code = 500
    default_message = "Internal error"

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message}


class EmptyCart(StorefrontError):
    status_code = 400
    default_message = "Cart is empty"


class OrderRejected(StorefrontError):
    """Co najmniej jedna pozycja koszyka nie moze byc zrealizowana."""

    status_code = 400
    default_message = "Some items in your cart are unavailable"

    def __init__(self, unavailable_items: List[Dict[str, Any]], message: str | None = None):
        super().__init__(message)
        self.unavailable_items = unavailable_items

    def to_dict(self) -> Dict[str, Any]:
        return {"message": self.message, "unavailable_items": self.unavailable_items}


class InvalidTransition(StorefrontError):
    status_code = 400
    default_message = "Order status change is not allowed"


class InvalidOperation(StorefrontError):
    status_code = 400
    default_message = "Operation is not allowed"


class NotFound(StorefrontError):
    status_code = 404
    default_message = "Not found"


class Conflict(StorefrontError):
    status_code = 409
    default_message = "Resource already exists"


class TransactionFailed(StorefrontError):
    """Transakcja zostala wycofana w calosci, mozna ponowic od zera."""

    status_code = 409
    default_message = "Could not complete the operation, please retry"
