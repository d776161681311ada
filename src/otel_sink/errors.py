"""Exception types raised by the sink."""


class SinkError(Exception):
    """Base class for sink errors."""


class ConfigurationError(SinkError):
    """Raised at startup when configuration is invalid.

    Collects every problem found so they can be fixed in one pass.
    """

    def __init__(self, errors: list[str]):
        self.errors = errors
        super().__init__("Invalid configuration: " + "; ".join(errors))


class SerializationError(SinkError):
    """Raised when a decoded request cannot be rendered as one NDJSON line."""


class ReceiverWriteError(SinkError):
    """Raised when a receiver gives up on writing an item."""

    def __init__(self, receiver: str, message: str):
        self.receiver = receiver
        super().__init__(f"{receiver}: {message}")
