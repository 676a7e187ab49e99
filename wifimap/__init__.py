"""Indoor WiFi coverage prediction and router placement."""

__version__ = "1.0.0"
