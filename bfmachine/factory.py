from __future__ import annotations

from pathlib import Path
from typing import Any, Optional, Union

from .errors import InvalidConfiguration
from .machine import Machine
from .program import Program


def interpreter(
    file: Optional[Union[str, Path]] = None,
    source: Optional[str] = None,
    **machine_options: Any,
) -> Machine:
    """Build a ready-to-run machine from a source file or an inline string.

    Exactly one of ``file`` and ``source`` must be given. Remaining keyword
    arguments (``memory``, ``input``, ``output``, ``max_steps``) are passed to
    :class:`Machine`. The program is not validated here; an invalid program
    fails when the machine is run.

    Example::

        machine = interpreter(source="++++++++++.")
        machine.run()
    """
    if file is not None and source is not None:
        raise InvalidConfiguration("Must pass only one of file or source")
    if file is None and source is None:
        raise InvalidConfiguration("Must pass a file or a source string")
    program = Program.from_file(file) if file is not None else Program.from_source(source)
    return Machine(program=program, **machine_options)


__all__ = ["interpreter"]
