"""
strace log parser.

Handles the layout produced by ``strace -f -T -o``::

    123 bind(3, {sa_family=AF_INET, sin_port=htons(5000), sin_addr=inet_addr("0.0.0.0")}, 16) = 0 <0.000021>
    [pid   124] bind(4, {sa_family=AF_INET6, sin6_port=htons(8080), ...}, 28) = -1 EADDRINUSE (Address already in use) <0.000010>

Lines that do not fit (signals, exits, ``<unfinished ...>`` halves, truncated
writes) are skipped; one bad line never fails the batch.
"""

import re
from pathlib import Path
from typing import Any, Iterable, Iterator, Optional, Union

from fix_dockerfile.constants import DEFAULT_ENCODING
from fix_dockerfile.schema import SyscallRecord
from fix_dockerfile.utils import ui

_LINE_RE = re.compile(
    r"^(?:\[pid\s+(?P<bracket_pid>\d+)\]\s+|(?P<pid>\d+)\s+)?"
    r"(?:\d+(?:[:.]\d+)+\s+)?"
    r"(?P<name>[a-z_][a-z0-9_]*)\((?P<args>.*)\)\s*=\s*"
    r"(?P<result>-?\d+|0x[0-9a-fA-F]+)"
    r"(?:\s+[A-Z][A-Z0-9_]*(?:\s+\([^)]*\))?)?"
    r"(?:\s+<(?P<timing>\d+(?:\.\d+)?)>)?\s*$"
)
_IDENT_RE = re.compile(r"[A-Za-z_][A-Za-z0-9_]*")
_INT_RE = re.compile(r"-?(?:0x[0-9a-fA-F]+|\d+)")

_CLOSERS = {"{": "}", "[": "]", "(": ")"}


class _ArgParser:
    """Recursive-descent reader for one strace argument list."""

    def __init__(self, text: str):
        self.text = text
        self.pos = 0

    def _peek(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def _skip_ws(self) -> None:
        while self._peek().isspace():
            self.pos += 1

    def _expect(self, char: str) -> None:
        self._skip_ws()
        if self._peek() != char:
            raise ValueError(f"expected {char!r} at {self.pos}")
        self.pos += 1

    def parse_all(self) -> list[Any]:
        if not self.text.strip():
            return []
        values = self._parse_sequence("")
        self._skip_ws()
        if self.pos != len(self.text):
            raise ValueError("trailing input")
        return values

    def _parse_sequence(self, closer: str) -> list[Any]:
        values: list[Any] = []
        self._skip_ws()
        if self._peek() == closer and closer:
            return values
        while True:
            values.append(self._parse_value())
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
                continue
            return values

    def _parse_value(self) -> Any:
        self._skip_ws()
        char = self._peek()
        if char == "{":
            return self._parse_struct()
        if char == "[":
            self.pos += 1
            items = self._parse_sequence("]")
            self._expect("]")
            return items
        if char == '"':
            return self._parse_string()
        if not char:
            raise ValueError("unexpected end of arguments")
        return self._parse_atom()

    def _parse_struct(self) -> dict[str, Any]:
        self._expect("{")
        struct: dict[str, Any] = {}
        self._skip_ws()
        index = 0
        while self._peek() != "}":
            match = _IDENT_RE.match(self.text, self.pos)
            after = match.end() if match else self.pos
            if match and self.text[after : after + 1] == "=" and self.text[after : after + 2] != "==":
                self.pos = after + 1
                struct[match.group(0)] = self._parse_value()
            else:
                value = self._parse_value()
                key = value["call"] if isinstance(value, dict) and "call" in value else f"_{index}"
                struct[key] = value
            index += 1
            self._skip_ws()
            if self._peek() == ",":
                self.pos += 1
                self._skip_ws()
            elif self._peek() != "}":
                raise ValueError(f"unterminated struct at {self.pos}")
        self.pos += 1
        return struct

    def _parse_string(self) -> str:
        self.pos += 1
        chars = []
        while True:
            char = self._peek()
            if not char:
                raise ValueError("unterminated string")
            self.pos += 1
            if char == "\\":
                chars.append(char + self._peek())
                self.pos += 1
            elif char == '"':
                break
            else:
                chars.append(char)
        # truncated strings are printed as "abc"...
        if self.text.startswith("...", self.pos):
            self.pos += 3
        return "".join(chars)

    def _parse_atom(self) -> Any:
        match = _IDENT_RE.match(self.text, self.pos)
        if match and self.text[match.end() : match.end() + 1] == "(":
            self.pos = match.end() + 1
            params = self._parse_sequence(")")
            self._expect(")")
            return {"call": match.group(0), "params": params}

        start = self.pos
        depth = 0
        while self.pos < len(self.text):
            char = self.text[self.pos]
            if char in _CLOSERS:
                depth += 1
            elif char in ")]}":
                if depth == 0:
                    break
                depth -= 1
            elif char == "," and depth == 0:
                break
            self.pos += 1
        return _scalar(self.text[start : self.pos].strip())


def _scalar(token: str) -> Union[int, str]:
    if _INT_RE.fullmatch(token):
        return int(token, 0) if "x" in token else int(token)
    return token


def parse_syscall_line(line: str) -> Optional[SyscallRecord]:
    """Parse one log line; ``None`` for noise and malformed lines."""
    line = line.strip()
    if not line or "<unfinished" in line or "resumed>" in line:
        return None

    match = _LINE_RE.match(line)
    if match is None:
        return None

    try:
        args = _ArgParser(match.group("args")).parse_all()
    except ValueError as e:
        ui.debug(f"Skipping malformed syscall line ({e}): {line}")
        return None

    pid = match.group("bracket_pid") or match.group("pid") or 0
    timing = match.group("timing")
    return SyscallRecord(
        name=match.group("name"),
        args=tuple(args),
        result=int(match.group("result"), 0),
        timing_micros=float(timing) * 1_000_000 if timing else 0.0,
        pid=int(pid),
    )


def parse_syscall_log(raw: Union[str, Iterable[str]]) -> Iterator[SyscallRecord]:
    """
    Lazily parse a syscall log.

    Args:
        raw: Whole log text, or any iterable of lines (e.g. an open file)

    Yields:
        SyscallRecord in file order
    """
    lines = raw.splitlines() if isinstance(raw, str) else raw
    for line in lines:
        record = parse_syscall_line(line)
        if record is not None:
            yield record


def read_syscall_log(path: Path) -> Iterator[SyscallRecord]:
    """Stream records from a log file. An unreadable log yields nothing."""
    try:
        f = path.open("r", encoding=DEFAULT_ENCODING, errors="replace")
    except OSError as e:
        ui.warning(f"Syscall log {path} unreadable, no trace data: {e}")
        return
    with f:
        yield from parse_syscall_log(f)
