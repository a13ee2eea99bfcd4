# app/domain/errors.py


class ShopError(Exception):
    """Bazowy wyjatek domenowy, status_code mapowany na odpowiedz HTTP."""

    status_code = 400

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(ShopError):
    status_code = 400


class EmptyCartError(ShopError):
    status_code = 400

    def __init__(self, message: str = "Cart is empty. Cannot create order with no items"):
        super().__init__(message)


class InsufficientStockError(ShopError):
    status_code = 400


class InvalidOrderStateError(ShopError):
    status_code = 409


class InvalidTransitionError(InvalidOrderStateError):
    def __init__(self, order_id, current, target):
        super().__init__(f"Order {order_id}: transition {current} -> {target} is not allowed")
        self.order_id = order_id
        self.current = current
        self.target = target


class ConcurrencyConflictError(ShopError):
    status_code = 409


class UnknownPaymentReferenceError(ShopError):
    status_code = 404

    def __init__(self, payment_intent_id: str):
        super().__init__(f"Order with payment intent ID {payment_intent_id} not found")
        self.payment_intent_id = payment_intent_id


class InvalidSignatureError(ShopError):
    status_code = 400


class PaymentGatewayError(ShopError):
    status_code = 502


class NotFoundError(ShopError):
    status_code = 404


class OrderNotFoundError(NotFoundError):
    pass


class UserNotFoundError(NotFoundError):
    pass


class ProductNotFoundError(NotFoundError):
    pass
