from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterator, List, Optional

from .errors import InvalidConfiguration, InvalidInstruction, StepLimitExceeded
from .memory import Memory
from .program import Program
from .streams import BufferedOutput, InputStream, OutputStream, StandardInput, StandardOutput

logger = logging.getLogger(__name__)

FORWARD = 1
BACKWARD = -FORWARD


class Operation(Enum):
    INCREMENT_DATA_POINTER = ">"
    DECREMENT_DATA_POINTER = "<"
    INCREMENT_CELL = "+"
    DECREMENT_CELL = "-"
    READ_BYTE = ","
    WRITE_BYTE = "."
    JUMP_FORWARD_ON_ZERO = "["
    JUMP_BACKWARD_ON_NON_ZERO = "]"


INSTRUCTION_MAPPING: Dict[str, Operation] = {operation.value: operation for operation in Operation}


def decode(instruction: Optional[str]) -> Optional[Operation]:
    """Translate an instruction token to its operation, or ``None`` if unknown."""
    if instruction is None:
        return None
    return INSTRUCTION_MAPPING.get(instruction)


@dataclass
class ExecutionState:
    step: int
    pc: int
    command: Optional[str]
    pointer: int
    tape_start: int
    tape: List[int]
    output: Optional[str]
    code_length: int


@dataclass
class Machine:
    """Executes a :class:`Program` against a :class:`Memory` tape.

    The machine owns an instruction pointer and a data pointer and runs the
    fetch/decode/dispatch cycle until the instruction pointer moves past the
    last instruction. It is single-use: once it has reached the end of the
    program, further calls to :meth:`run` return immediately.
    """

    program: Program
    memory: Memory = field(default_factory=Memory)
    input: InputStream = field(default_factory=StandardInput, repr=False)
    output: OutputStream = field(default_factory=StandardOutput, repr=False)
    max_steps: Optional[int] = None

    instruction_pointer: int = field(init=False, default=0)
    data_pointer: int = field(init=False, default=0)
    steps: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        if self.max_steps is not None and self.max_steps < 0:
            raise InvalidConfiguration(f"max_steps must be non-negative, got {self.max_steps}")

    @property
    def halted(self) -> bool:
        return self.instruction_pointer >= self.program.size

    def run(self) -> bool:
        self.program.validate()
        logger.debug(
            "Running program of %d instructions on %d cells",
            self.program.size,
            self.memory.size,
        )
        while not self.halted:
            self._cycle()
        logger.debug("Program finished after %d steps", self.steps)
        return True

    def step(self, tape_window: int = 10) -> Iterator[ExecutionState]:
        self.program.validate()
        while not self.halted:
            command = self._cycle()
            yield self.snapshot(command, tape_window)

        # Emit final snapshot indicating completion
        yield self.snapshot(None, tape_window)

    def snapshot(self, command: Optional[str] = None, tape_window: int = 10) -> ExecutionState:
        start = max(0, self.data_pointer - tape_window)
        end = min(self.memory.size, self.data_pointer + tape_window + 1)
        output = self.output.text() if isinstance(self.output, BufferedOutput) else None
        return ExecutionState(
            step=self.steps,
            pc=self.instruction_pointer,
            command=command,
            pointer=self.data_pointer,
            tape_start=start,
            tape=self.memory.window(start, end),
            output=output,
            code_length=self.program.size,
        )

    def _cycle(self) -> str:
        if self.max_steps is not None and self.steps >= self.max_steps:
            raise StepLimitExceeded("Brainfuck program exceeded allowed step count")
        instruction = self._fetch()
        self._dispatch(decode(instruction))
        self.instruction_pointer += 1
        self.steps += 1
        return instruction

    def _fetch(self) -> str:
        return self.program.instruction_at(self.instruction_pointer)

    def _dispatch(self, operation: Optional[Operation]) -> None:
        memory = self.memory
        if operation is Operation.INCREMENT_DATA_POINTER:
            self.data_pointer = (self.data_pointer + 1) % memory.size
        elif operation is Operation.DECREMENT_DATA_POINTER:
            self.data_pointer = (self.data_pointer - 1) % memory.size
        elif operation is Operation.INCREMENT_CELL:
            value = memory.read(self.data_pointer)
            if value == memory.maximum_value:
                value = memory.minimum_value
            else:
                value += 1
            memory.write(self.data_pointer, value)
        elif operation is Operation.DECREMENT_CELL:
            value = memory.read(self.data_pointer)
            if value == memory.minimum_value:
                value = memory.maximum_value
            else:
                value -= 1
            memory.write(self.data_pointer, value)
        elif operation is Operation.READ_BYTE:
            memory.write(self.data_pointer, self._read_input())
        elif operation is Operation.WRITE_BYTE:
            self.output.write(memory.read(self.data_pointer))
        elif operation is Operation.JUMP_FORWARD_ON_ZERO:
            if memory.read(self.data_pointer) == 0:
                self.instruction_pointer += self._jump_distance(FORWARD)
        elif operation is Operation.JUMP_BACKWARD_ON_NON_ZERO:
            if memory.read(self.data_pointer) != 0:
                self.instruction_pointer += self._jump_distance(BACKWARD)
        else:
            raise InvalidInstruction(f"Cannot execute invalid instruction: {operation!r}")

    def _read_input(self) -> int:
        value = self.input.read()
        while not self.memory.in_range(value):
            logger.debug("Discarding input value %r outside the cell range", value)
            value = self.input.read()
        return value

    def _jump_distance(self, direction: int) -> int:
        """Signed distance from the current bracket to its matching bracket.

        Walks the instructions in ``direction``; brackets facing the direction
        of travel open a nesting level and the opposite ones close it. The
        caller's regular advance then lands one past the match.
        """
        opening, closing = ("[", "]") if direction == FORWARD else ("]", "[")
        depth = 1
        distance = 0
        while depth:
            distance += direction
            instruction = self.program.instruction_at(self.instruction_pointer + distance)
            if instruction == opening:
                depth += 1
            elif instruction == closing:
                depth -= 1
        return distance


__all__ = [
    "BACKWARD",
    "FORWARD",
    "INSTRUCTION_MAPPING",
    "ExecutionState",
    "Machine",
    "Operation",
    "decode",
]
