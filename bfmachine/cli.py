from __future__ import annotations

import argparse
import logging
import sys
from typing import Any, Dict, Optional

from .errors import MachineError
from .factory import interpreter
from .memory import DEFAULT_SIZE, MAX_VALUE, MIN_VALUE, Memory
from .streams import BufferedInput


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Brainfuck virtual machine")
    parser.add_argument("source", nargs="?", help="Path to Brainfuck source file")
    parser.add_argument(
        "-e",
        "--eval",
        dest="code",
        help="Brainfuck source given inline instead of a file",
    )
    parser.add_argument(
        "--input",
        default=None,
        help="Input string supplied to the program instead of standard input",
    )
    parser.add_argument(
        "--memory-size",
        type=int,
        default=DEFAULT_SIZE,
        help=f"Number of memory cells (default: {DEFAULT_SIZE})",
    )
    parser.add_argument("--cell-min", type=int, default=MIN_VALUE, help="Minimum cell value")
    parser.add_argument("--cell-max", type=int, default=MAX_VALUE, help="Maximum cell value")
    parser.add_argument(
        "--max-steps",
        type=int,
        default=None,
        help="Abort after this many instructions (default: unlimited)",
    )
    parser.add_argument(
        "--check",
        action="store_true",
        help="Only validate the program and report its instruction count",
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    try:
        memory = Memory(size=args.memory_size, minimum=args.cell_min, maximum=args.cell_max)
        options: Dict[str, Any] = {"memory": memory, "max_steps": args.max_steps}
        if args.input is not None:
            options["input"] = BufferedInput(args.input, eof_value=memory.default_value)
        machine = interpreter(file=args.source, source=args.code, **options)
        if args.check:
            machine.program.validate()
            print(f"OK: {machine.program.size} instructions")
            return 0
        machine.run()
    except MachineError as exc:
        print(f"{type(exc).__name__}: {exc}", file=sys.stderr)
        return 1
    except EOFError as exc:
        print(f"Input error: {exc}", file=sys.stderr)
        return 1

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
