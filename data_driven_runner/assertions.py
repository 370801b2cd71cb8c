"""Assertion sinks: every check is reported as an independent named result."""

from __future__ import annotations

from typing import Any, Callable, Optional, Protocol

import structlog

from .models import AssertionRecord

LOGGER = structlog.get_logger("data_driven_runner")


class AssertionSink(Protocol):
    def record(self, name: str, passed: bool, message: Optional[str] = None) -> None: ...


class AssertionCollector:
    """Keeps every reported assertion in order, optionally forwarding each one."""

    def __init__(self, listener: Optional[Callable[[AssertionRecord], None]] = None) -> None:
        self.records: list[AssertionRecord] = []
        self._listener = listener

    def record(self, name: str, passed: bool, message: Optional[str] = None) -> None:
        entry = AssertionRecord(name=name, passed=passed, message=message)
        self.records.append(entry)
        if passed:
            LOGGER.debug("assertion_passed", assertion=name)
        else:
            LOGGER.info("assertion_failed", assertion=name, reason=message)
        if self._listener is not None:
            self._listener(entry)

    @property
    def passed(self) -> list[AssertionRecord]:
        return [record for record in self.records if record.passed]

    @property
    def failed(self) -> list[AssertionRecord]:
        return [record for record in self.records if not record.passed]

    def names(self) -> list[str]:
        return [record.name for record in self.records]

    def clear(self) -> None:
        self.records.clear()


def expect_equal(sink: AssertionSink, name: str, expected: object, actual: object) -> bool:
    """Report an equality check and return whether it held."""

    passed = strict_equal(expected, actual)
    message = None if passed else f"expected {expected!r}, got {actual!r}"
    sink.record(name, passed, message)
    return passed


def strict_equal(expected: Any, actual: Any) -> bool:
    """Equality without coercion between JSON types.

    ``int`` and ``float`` compare by value since JSON has a single number type.
    Mappings and sequences are compared element by element.
    """

    if isinstance(expected, bool) or isinstance(actual, bool):
        return type(expected) is type(actual) and expected == actual
    if isinstance(expected, (int, float)) and isinstance(actual, (int, float)):
        return expected == actual
    if isinstance(expected, dict) and isinstance(actual, dict):
        return expected.keys() == actual.keys() and all(
            strict_equal(value, actual[key]) for key, value in expected.items()
        )
    if isinstance(expected, (list, tuple)) and isinstance(actual, (list, tuple)):
        return len(expected) == len(actual) and all(
            strict_equal(left, right) for left, right in zip(expected, actual)
        )
    return type(expected) is type(actual) and expected == actual
