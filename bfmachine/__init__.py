from .errors import (
    IndexOutOfBounds,
    InvalidConfiguration,
    InvalidInstruction,
    InvalidProgram,
    MachineError,
    SourceUnavailable,
    StepLimitExceeded,
    ValueOutOfRange,
)
from .factory import interpreter
from .machine import ExecutionState, Machine, Operation
from .memory import Memory
from .program import Program
from .streams import BufferedInput, BufferedOutput, StandardInput, StandardOutput
from .visualizer import VisualizerSession

__all__ = [
    "BufferedInput",
    "BufferedOutput",
    "ExecutionState",
    "IndexOutOfBounds",
    "InvalidConfiguration",
    "InvalidInstruction",
    "InvalidProgram",
    "Machine",
    "MachineError",
    "Memory",
    "Operation",
    "Program",
    "SourceUnavailable",
    "StandardInput",
    "StandardOutput",
    "StepLimitExceeded",
    "ValueOutOfRange",
    "VisualizerSession",
    "interpreter",
]
