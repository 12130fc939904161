"""
MOA Event Bus — Errors
========================
Raised when a subscription is registered. Dispatch never raises.
"""


class EventBusError(Exception):
    pass


class InvalidEventTypeFormat(EventBusError):
    def __init__(self, event_type: str):
        self.event_type = event_type
        super().__init__(
            f"'{event_type}' is not an event type: expected "
            f"<engine>.<subject>.<change>, e.g. order_store.member_order.status_changed."
        )


class DuplicateSubscriberError(EventBusError):
    def __init__(self, event_type: str, handler_name: str):
        self.event_type = event_type
        self.handler_name = handler_name
        super().__init__(f"{handler_name} already listens to {event_type}.")


class SelfSubscriptionError(EventBusError):
    """An engine listening to events it publishes itself."""

    def __init__(self, engine: str, event_type: str):
        self.engine = engine
        self.event_type = event_type
        super().__init__(
            f"Engine '{engine}' publishes {event_type}; pass "
            f"allow_self_subscription=True to listen to it."
        )
