from __future__ import annotations

import logging
from dataclasses import dataclass
from functools import cached_property
from pathlib import Path
from typing import Tuple, Union

from .errors import InvalidProgram, SourceUnavailable, check_index

logger = logging.getLogger(__name__)

# All eight valid Brainfuck instructions; every other character is a comment.
INSTRUCTIONS = "><+-,.[]"


@dataclass(frozen=True)
class Program:
    """Brainfuck source text and the instruction sequence parsed from it.

    Parsing is deferred until the instructions are first needed and is then
    cached. A program may be shared read-only between machines.
    """

    source: str

    @classmethod
    def from_source(cls, text: str) -> "Program":
        return cls(str(text))

    from_string = from_source

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> "Program":
        source_path = Path(path)
        try:
            text = source_path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as exc:
            raise SourceUnavailable(f"Cannot read program source {path}: {exc}") from exc
        logger.debug("Loaded program source from %s (%d characters)", source_path, len(text))
        return cls.from_source(text)

    @cached_property
    def instructions(self) -> Tuple[str, ...]:
        return tuple(char for char in self.source if char in INSTRUCTIONS)

    @property
    def size(self) -> int:
        return len(self.instructions)

    def __len__(self) -> int:
        return self.size

    def instruction_at(self, index: int) -> str:
        check_index(index, self.size, "instruction index")
        return self.instructions[index]

    def validate(self) -> None:
        if not self.instructions:
            raise InvalidProgram("empty program")
        open_positions = []
        for index, char in enumerate(self.instructions):
            if char == "[":
                open_positions.append(index)
            elif char == "]":
                if not open_positions:
                    raise InvalidProgram(f"unmatched ']' at instruction {index}")
                open_positions.pop()
        if open_positions:
            raise InvalidProgram(f"unmatched '[' at instruction {open_positions.pop()}")

    def is_valid(self) -> bool:
        try:
            self.validate()
        except InvalidProgram:
            return False
        return True


__all__ = ["INSTRUCTIONS", "Program"]
