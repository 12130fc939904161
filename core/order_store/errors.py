"""
MOA Order Store — Errors
"""


class OrderStoreError(Exception):
    """Base for order store failures."""


class OrderNotFound(OrderStoreError, LookupError):
    def __init__(self, order_id):
        self.order_id = order_id
        super().__init__(f"Member order #{order_id} does not exist.")


class UnknownOrderStatus(OrderStoreError, ValueError):
    def __init__(self, status):
        self.status = status
        super().__init__(f"'{status}' is not a member order status.")
