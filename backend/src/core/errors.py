class PersistenceError(Exception):
    """The message store is unreachable or rejected the operation."""


class DeliveryError(Exception):
    """A websocket send failed during a broadcast."""

    def __init__(self, connection_id: str, event: str):
        super().__init__(f"Could not deliver {event!r} to {connection_id}")
        self.connection_id = connection_id
        self.event = event
