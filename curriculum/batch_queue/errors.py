"""Exception classes for the batch queue."""


class GenerationError(Exception):
    """A generation collaborator failed to produce output."""

    def __init__(self, message: str, provider: str | None = None):
        self.message = message
        self.provider = provider
        super().__init__(message)


class QueueError(Exception):
    """Base batch queue exception."""

    pass


class QueueItemNotFoundError(QueueError, KeyError):
    """No item with the given id in the current queue."""

    def __init__(self, item_id: str):
        self.item_id = item_id
        super().__init__(f"No queue item with id {item_id!r}")

    def __str__(self) -> str:
        return self.args[0]


class InvalidTransitionError(QueueError, ValueError):
    """Requested status change is not an edge of the item state machine."""

    def __init__(self, item_id: str, current: str, target: str):
        self.item_id = item_id
        self.current = current
        self.target = target
        super().__init__(f"Item {item_id!r} cannot move from {current} to {target}")


class QueueBusyError(QueueError):
    """Operation not allowed while a run is active."""

    pass
