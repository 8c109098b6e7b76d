"""
Recovers row tuples from a single extended ``INSERT`` statement.

``mysqldump --extended-insert`` writes one statement per line holding
thousands of ``(...)`` groups. Values may be quoted strings with commas,
escaped quotes, or brace-delimited JSON payloads, so neither the groups nor
their fields can be split with a plain ``str.split``.
"""

import re
from enum import Enum


class TokenizeError(ValueError):
    """Raised when a statement's value list cannot be scanned."""


class ScanState(Enum):
    NORMAL = "normal"
    IN_QUOTE = "in-quote"
    IN_BRACE = "in-brace"


class ValueScanner:
    """Character-at-a-time state machine shared by group and field scanning.

    A single quote toggles ``in_quote`` unless the character before it is a
    backslash. Braces outside quotes move ``brace_depth``. An escaped
    backslash followed by a quote (``\\\\'``) is therefore read as an escaped
    quote; mysqldump output rarely hits this and it is left as is.
    """

    def __init__(self) -> None:
        self.in_quote = False
        self.brace_depth = 0
        self._previous = ""

    @property
    def state(self) -> ScanState:
        if self.in_quote:
            return ScanState.IN_QUOTE
        if self.brace_depth != 0:
            return ScanState.IN_BRACE
        return ScanState.NORMAL

    def feed(self, char: str) -> ScanState:
        if char == "'" and self._previous != "\\":
            self.in_quote = not self.in_quote
        elif not self.in_quote:
            if char == "{":
                self.brace_depth += 1
            elif char == "}":
                self.brace_depth -= 1
        self._previous = char
        return self.state


class InsertStatementTokenizer:
    """Split ``INSERT INTO <table> VALUES (...),(...);`` lines into raw tuples."""

    def __init__(self, target_table: str):
        """
        Args:
            target_table (str): Table whose statements are interpreted. Lines
                inserting into any other table are not applicable.
        """
        self.target_table = target_table
        self._prefix = re.compile(
            r"^\s*INSERT\s+INTO\s+`?" + re.escape(target_table) + r"`?\s+VALUES\s*",
            re.IGNORECASE,
        )

    def matches(self, line: str) -> bool:
        return self._prefix.match(line) is not None

    def tokenize(self, line: str) -> list[list[str]] | None:
        """Tokenize one statement line.

        Args:
            line (str): A single line of the dump.

        Returns:
            list[list[str]] | None: One list of trimmed field substrings per
            value group, or None when the line is not an insert into the
            target table.

        Raises:
            TokenizeError: If the value list is malformed.
        """
        match = self._prefix.match(line)
        if match is None:
            return None

        body = line[match.end():]
        return [self.split_fields(group) for group in self.iter_groups(body)]

    def iter_groups(self, body: str):
        """Yield the contents of each top-level ``(...)`` group, parentheses stripped."""
        pos = 0
        length = len(body)
        expect_group = False

        while True:
            pos = _skip_whitespace(body, pos)
            if pos >= length or body[pos] == ";":
                if expect_group:
                    raise TokenizeError("dangling ',' after last value group")
                return

            if body[pos] != "(":
                raise TokenizeError(
                    f"expected '(' at offset {pos}, found {body[pos]!r}"
                )

            end = _find_group_end(body, pos)
            yield body[pos + 1 : end]

            pos = _skip_whitespace(body, end + 1)
            if pos < length and body[pos] == ",":
                pos += 1
                expect_group = True
            elif pos >= length or body[pos] == ";":
                expect_group = False
            else:
                raise TokenizeError(
                    f"unexpected {body[pos]!r} after value group at offset {pos}"
                )

    def split_fields(self, group: str) -> list[str]:
        """Split one group's contents on top-level commas."""
        scanner = ValueScanner()
        fields: list[str] = []
        current: list[str] = []

        for char in group:
            state = scanner.feed(char)
            if char == "," and state is ScanState.NORMAL:
                fields.append("".join(current).strip())
                current = []
                continue
            current.append(char)

        fields.append("".join(current).strip())
        return fields


def _skip_whitespace(text: str, pos: int) -> int:
    while pos < len(text) and text[pos].isspace():
        pos += 1
    return pos


def _find_group_end(body: str, start: int) -> int:
    """Return the index of the ``)`` closing the group opened at ``start``.

    Quotes are tracked with the same toggle as field splitting, so a string
    ending in a backslash keeps the quote open and the group unterminated.
    """
    scanner = ValueScanner()
    paren_depth = 0

    for index in range(start + 1, len(body)):
        char = body[index]
        state = scanner.feed(char)
        if state is not ScanState.NORMAL:
            continue
        if char == "(":
            paren_depth += 1
        elif char == ")":
            if paren_depth == 0:
                return index
            paren_depth -= 1

    raise TokenizeError(f"unterminated value group starting at offset {start}")
