"""
Key-value configuration store interface.

The orchestration code reads and writes persisted state only through this
interface, so the backing store (YAML file, database, OS registry) can be
swapped without touching it. Keys are dotted paths such as
``records._6fb23d16b162f18a.serial``.
"""

import abc
from typing import Any


class ConfigStore(abc.ABC):
    """Typed key-value store for persisted agent state."""

    @abc.abstractmethod
    def get(self, key: str, default: Any = None) -> Any:
        """Return the raw value stored at ``key`` or ``default``."""

    @abc.abstractmethod
    def set(self, key: str, value: Any) -> None:
        """Store ``value`` at ``key`` and persist it."""

    @abc.abstractmethod
    def unset(self, key: str) -> None:
        """Remove ``key``; missing keys are ignored."""

    @abc.abstractmethod
    def clear(self) -> None:
        """Drop every stored value."""

    def read_str(self, key: str, default: str | None = None) -> str | None:
        value = self.get(key)
        if value is None or value == "":
            return default
        return str(value)

    def write_str(self, key: str, value: str | None) -> None:
        self.set(key, value)

    def read_int(self, key: str, default: int = 0) -> int:
        value = self.get(key)
        if value is None or isinstance(value, bool):
            return default
        try:
            return int(value)
        except (TypeError, ValueError):
            return default

    def write_int(self, key: str, value: int) -> None:
        self.set(key, int(value))

    def read_bool(self, key: str, default: bool = False) -> bool:
        value = self.get(key)
        if value is None:
            return default
        if isinstance(value, bool):
            return value
        if isinstance(value, int):
            return value != 0
        return str(value).strip().lower() in ("true", "yes", "1", "on")

    def write_bool(self, key: str, value: bool) -> None:
        self.set(key, bool(value))

    def read_str_list(self, key: str) -> list[str]:
        value = self.get(key)
        if not value:
            return []
        if isinstance(value, str):
            return [item.strip() for item in value.split(",") if item.strip()]
        return [str(item) for item in value]

    def write_str_list(self, key: str, values: list[str]) -> None:
        self.set(key, list(values))

    def delete(self, key: str) -> None:
        self.unset(key)
