"""Exception hierarchy for the data-driven runner."""

from __future__ import annotations


class RunnerError(Exception):
    """Base class for runner failures."""


class DeserializationError(RunnerError):
    """Persisted text could not be decoded into the expected structure."""

    def __init__(self, key: str, reason: str) -> None:
        super().__init__(f"Failed to decode value stored under '{key}': {reason}")
        self.key = key
        self.reason = reason


class TransportError(RunnerError):
    """The request could not be dispatched or no response was received."""

    def __init__(self, method: str, url: str, reason: str) -> None:
        super().__init__(f"HTTP request failed for {method} {url}: {reason}")
        self.method = method
        self.url = url
        self.reason = reason

