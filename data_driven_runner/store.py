"""Key-value environment stores backing scenarios, cursor and results."""

from __future__ import annotations

import json
from pathlib import Path
from typing import Iterator, Optional, Protocol

import structlog

LOGGER = structlog.get_logger("data_driven_runner")


class KeyValueStore(Protocol):
    """String-keyed, string-valued environment store."""

    def get(self, key: str) -> Optional[str]: ...

    def set(self, key: str, value: str) -> None: ...

    def unset(self, key: str) -> None: ...

    def keys(self) -> Iterator[str]: ...


class InMemoryStore:
    """Process-local store, mainly for tests and embedding."""

    def __init__(self, initial: Optional[dict[str, str]] = None) -> None:
        self._values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._values[key] = str(value)

    def unset(self, key: str) -> None:
        self._values.pop(key, None)

    def keys(self) -> Iterator[str]:
        return iter(list(self._values))

    def as_dict(self) -> dict[str, str]:
        return dict(self._values)


class FileEnvironmentStore:
    """Environment persisted as an exported API-client environment file.

    The file holds ``{"name": ..., "values": [{"key", "value", "enabled"}]}``.
    Disabled entries are kept on disk but hidden from ``get``. Every mutation
    rewrites the file so separate processes can resume from the same state.
    """

    def __init__(self, path: Path, name: str = "data-driven-runner") -> None:
        self.path = path
        self.name = name
        self._values: dict[str, str] = {}
        self._disabled: dict[str, str] = {}
        self._load()

    def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    def set(self, key: str, value: str) -> None:
        self._disabled.pop(key, None)
        self._values[key] = str(value)
        self._flush()

    def unset(self, key: str) -> None:
        if key in self._values or key in self._disabled:
            self._values.pop(key, None)
            self._disabled.pop(key, None)
            self._flush()

    def keys(self) -> Iterator[str]:
        return iter(list(self._values))

    def _load(self) -> None:
        if not self.path.exists():
            return
        text = self.path.read_text(encoding="utf-8")
        if not text.strip():
            return
        try:
            payload = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ValueError(f"Environment file {self.path} is not valid JSON: {exc}") from exc
        if not isinstance(payload, dict):
            raise ValueError(f"Environment file {self.path} must contain a mapping")
        self.name = str(payload.get("name") or self.name)
        for item in payload.get("values") or []:
            if not isinstance(item, dict) or "key" not in item:
                continue
            key = str(item["key"])
            value = "" if item.get("value") is None else str(item["value"])
            if item.get("enabled", True):
                self._values[key] = value
            else:
                self._disabled[key] = value
        LOGGER.debug("environment_loaded", path=str(self.path), variables=len(self._values))

    def _flush(self) -> None:
        values = [{"key": key, "value": value, "enabled": True} for key, value in self._values.items()]
        values.extend(
            {"key": key, "value": value, "enabled": False} for key, value in self._disabled.items()
        )
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(
            json.dumps({"name": self.name, "values": values}, indent=2),
            encoding="utf-8",
        )
