"""Special values understood by the statement builder.

``ABSENT`` marks "no value supplied", which is different from ``None``
(bound as SQL NULL).  ``increment(n)`` wraps a relative change so that
``update`` renders ``col = col + $k`` instead of a literal assignment.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final


class _Absent:
    """Singleton type of :data:`ABSENT`. Falsy, so hooks can write ``value or default``."""

    _instance: _Absent | None = None

    def __new__(cls) -> _Absent:
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Final = _Absent()


def is_absent(value: Any) -> bool:
    return value is ABSENT


@dataclass(frozen=True)
class Increment:
    """Relative change applied atomically by the database.

    ``Increment(-20)`` renders ``"likes" = "likes" - $k`` binding ``20``.
    """

    amount: int

    def __post_init__(self) -> None:
        if isinstance(self.amount, bool) or not isinstance(self.amount, int):
            raise TypeError(f"increment amount must be an int, got {self.amount!r}")

    @property
    def operator(self) -> str:
        return "+" if self.amount >= 0 else "-"

    @property
    def magnitude(self) -> int:
        return abs(self.amount)


def increment(amount: int) -> Increment:
    """Shortcut for :class:`Increment` (``users.update({"id": 1, "likes": increment(1)})``)."""
    return Increment(amount)


__all__ = [
    "ABSENT",
    "Increment",
    "increment",
    "is_absent",
]
