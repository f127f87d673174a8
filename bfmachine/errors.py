from __future__ import annotations


class MachineError(Exception):
    """Base class for every error raised by bfmachine."""


class InvalidConfiguration(MachineError, ValueError):
    """Raised when a memory, machine or factory is built with unusable arguments."""


class SourceUnavailable(MachineError, OSError):
    """Raised when program source cannot be read from disk."""


class IndexOutOfBounds(MachineError, IndexError):
    """Raised when a program or memory index falls outside its valid range."""


class ValueOutOfRange(MachineError, ValueError):
    """Raised when a cell or output value falls outside its permitted range."""


class InvalidProgram(MachineError, ValueError):
    """Raised when an empty or unbalanced program is validated or run."""


class InvalidInstruction(MachineError, RuntimeError):
    """Raised when the machine is asked to dispatch an unknown instruction."""


class StepLimitExceeded(MachineError, RuntimeError):
    """Raised when execution exceeds the configured step budget."""


def check_index(index: int, size: int, what: str = "index") -> None:
    # bool is an int subclass; True/False are never meaningful positions
    if isinstance(index, bool) or not isinstance(index, int):
        raise IndexOutOfBounds(f"{what} must be an integer, got {index!r}")
    if not 0 <= index < size:
        raise IndexOutOfBounds(f"{what} {index} out of bounds (size {size})")


__all__ = [
    "MachineError",
    "InvalidConfiguration",
    "SourceUnavailable",
    "IndexOutOfBounds",
    "ValueOutOfRange",
    "InvalidProgram",
    "InvalidInstruction",
    "StepLimitExceeded",
    "check_index",
]
