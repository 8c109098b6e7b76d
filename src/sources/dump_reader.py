import logging
from pathlib import Path
from typing import Iterator

logger = logging.getLogger(__name__)


class InputSourceError(RuntimeError):
    """Raised when the dump cannot be opened or read to the end."""


def iter_statement_lines(dump_path: str | Path, encoding: str = "utf-8") -> Iterator[str]:
    """Yield the dump one line at a time, without the trailing newline.

    Lines are read lazily so memory stays flat however large the dump is.
    Bytes that are not valid in ``encoding`` are decoded as U+FFFD; the line
    then goes through the normal parse path like any other.

    Raises:
        InputSourceError: If the file is missing or unreadable.
    """
    path = Path(dump_path)
    try:
        with path.open("r", encoding=encoding, errors="replace", newline=None) as handle:
            for line in handle:
                yield line.rstrip("\r\n")
    except OSError as exc:
        raise InputSourceError(f"Failed reading dump {path}: {exc}") from exc
