"""Output sinks for generated assembly."""

import contextlib
import os
import tempfile
from pathlib import Path
from typing import Iterable, Iterator, TextIO, Union


def is_instruction(line: str) -> bool:
    """True for A- and C-instructions, False for labels and comments."""
    return not (line.startswith("(") or line.startswith("//"))


class AsmSink:
    """Append-only destination for assembly lines."""

    def __init__(self, stream: TextIO):
        self.stream = stream
        self.line_count = 0
        self.instruction_count = 0

    def write_lines(self, lines: Iterable[str]) -> None:
        for line in lines:
            self.stream.write(line)
            self.stream.write("\n")
            self.line_count += 1
            if is_instruction(line):
                self.instruction_count += 1

    def flush(self) -> None:
        self.stream.flush()



def _new_file_mode() -> int:
    """Mode a plain open() would give a new file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


@contextlib.contextmanager
def open_output(path: Union[str, Path]) -> Iterator[AsmSink]:
    """Open an assembly file for writing, replacing it only on success.

    Lines go to a temporary file next to ``path``. If the block exits
    normally the temporary file is renamed onto ``path``; if it raises, the
    temporary file is removed and ``path`` is left untouched.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    try:
        with os.fdopen(fd, "w") as stream:
            sink = AsmSink(stream)
            yield sink
            sink.flush()
        os.chmod(tmp_name, _new_file_mode())
        os.replace(tmp_name, path)
    except BaseException:
        with contextlib.suppress(FileNotFoundError):
            os.unlink(tmp_name)
        raise
