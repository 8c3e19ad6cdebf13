"""Engine-level exception types."""

from __future__ import annotations


class InvalidConfigurationError(ValueError):
    """Raised when a caller passes a period, iteration count or target map the engine cannot honour."""

    def __init__(self, field: str, message: str) -> None:
        self.field = field
        self.message = message
        super().__init__(f"{field}: {message}")
