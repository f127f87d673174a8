from __future__ import annotations

from typing import List

from .errors import InvalidConfiguration, ValueOutOfRange, check_index

DEFAULT_SIZE = 30000
MIN_VALUE = 0
MAX_VALUE = 255


class Memory:
    """Fixed-size tape of integer cells bounded to ``[minimum, maximum]``."""

    def __init__(
        self,
        size: int = DEFAULT_SIZE,
        minimum: int = MIN_VALUE,
        maximum: int = MAX_VALUE,
        default: int = MIN_VALUE,
    ) -> None:
        if size <= 0:
            raise InvalidConfiguration(f"Invalid memory size: {size}")
        if minimum > maximum:
            raise InvalidConfiguration(
                f"Invalid memory range: minimum {minimum} exceeds maximum {maximum}"
            )
        if not minimum <= default <= maximum:
            raise InvalidConfiguration(
                f"Invalid default memory value {default} for range [{minimum}, {maximum}]"
            )
        self._minimum = minimum
        self._maximum = maximum
        self._default = default
        self._cells: List[int] = [default] * size

    def __repr__(self) -> str:
        return (
            f"Memory(size={self.size}, minimum={self._minimum}, "
            f"maximum={self._maximum}, default={self._default})"
        )

    def __len__(self) -> int:
        return len(self._cells)

    @property
    def size(self) -> int:
        return len(self._cells)

    @property
    def minimum_value(self) -> int:
        return self._minimum

    @property
    def maximum_value(self) -> int:
        return self._maximum

    @property
    def default_value(self) -> int:
        return self._default

    def in_range(self, value: int) -> bool:
        return self._minimum <= value <= self._maximum

    def read(self, index: int) -> int:
        check_index(index, self.size, "memory index")
        return self._cells[index]

    def write(self, index: int, value: int) -> None:
        check_index(index, self.size, "memory index")
        if isinstance(value, bool) or not isinstance(value, int):
            raise ValueOutOfRange(f"Cell values must be integers, got {value!r}")
        if not self.in_range(value):
            raise ValueOutOfRange(
                f"Invalid value {value} for cell {index}; "
                f"expected [{self._minimum}, {self._maximum}]"
            )
        self._cells[index] = value

    def window(self, start: int, stop: int) -> List[int]:
        start = max(0, start)
        stop = min(self.size, stop)
        return self._cells[start:stop].copy()


__all__ = ["DEFAULT_SIZE", "MAX_VALUE", "MIN_VALUE", "Memory"]
