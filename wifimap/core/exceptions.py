"""Exceptions raised by the coverage engine."""


class WiFiMapError(Exception):
    """Base class for engine errors."""


class CoordinateFrameMismatch(WiFiMapError, ValueError):
    """A router or result belongs to a different room than the one supplied."""

    def __init__(self, expected_room_id: str, actual_room_id: str):
        self.expected_room_id = expected_room_id
        self.actual_room_id = actual_room_id
        super().__init__(
            f"Router is pinned to room '{actual_room_id}' but was evaluated "
            f"against room '{expected_room_id}'"
        )


class OperationCancelled(WiFiMapError):
    """Raised when a caller cancels a long-running computation."""
