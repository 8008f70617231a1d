from __future__ import annotations

from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class Slot(Generic[T]):
    """Hand-off point for a value produced by one step and read by a later one."""

    def __init__(self, name: str, value: Optional[T] = None):
        self.name = name
        self._value = value

    @classmethod
    def filled(cls, name: str, value: T) -> "Slot[T]":
        return cls(name, value)

    def publish(self, value: T) -> None:
        self._value = value

    def get(self) -> Optional[T]:
        return self._value

    def is_set(self) -> bool:
        return self._value is not None

    def clear(self) -> None:
        self._value = None

    def __repr__(self) -> str:
        return f"Slot({self.name!r}, {self._value!r})"
