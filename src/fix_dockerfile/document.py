"""Line-addressable text snapshots and newline handling."""

import os
import sys
from bisect import bisect_right

from fix_dockerfile.schema import Position, Range, RepairEdit


def host_newline() -> str:
    """Newline sequence of the host platform."""
    if sys.platform.startswith("win") or os.name == "nt":
        return "\r\n"
    return "\n"


def detect_newline(text: str) -> str:
    """Newline used by a document. Falls back to the host's when it has none."""
    if "\r\n" in text:
        return "\r\n"
    if "\n" in text:
        return "\n"
    return host_newline()


class TextDocument:
    """
    Immutable snapshot of a document's text.

    Every repair is computed against one of these, never against text that
    previous edits already changed, so stale diagnostics cannot corrupt it.
    """

    def __init__(self, text: str):
        self.text = text
        self.newline = detect_newline(text)
        self._line_starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                self._line_starts.append(index + 1)

    @property
    def line_count(self) -> int:
        return len(self._line_starts)

    def line_text(self, line: int) -> str:
        """Content of a line without its line terminator."""
        if line < 0 or line >= self.line_count:
            return ""
        start = self._line_starts[line]
        end = (
            self._line_starts[line + 1]
            if line + 1 < self.line_count
            else len(self.text)
        )
        return self.text[start:end].rstrip("\r\n")

    def offset_at(self, position: Position) -> int:
        """Absolute offset of a position, clamped into the document."""
        if position.line >= self.line_count:
            return len(self.text)
        start = self._line_starts[position.line]
        return start + min(position.character, len(self.line_text(position.line)))

    def position_at(self, offset: int) -> Position:
        offset = max(0, min(offset, len(self.text)))
        line = bisect_right(self._line_starts, offset) - 1
        character = offset - self._line_starts[line]
        # an offset between \r and \n belongs to the end of the line content
        character = min(character, len(self.line_text(line)))
        return Position(line=line, character=character)

    def line_start(self, line: int) -> Position:
        if line >= self.line_count:
            return self.end_position()
        return Position(line=line, character=0)

    def end_position(self) -> Position:
        return self.position_at(len(self.text))

    def get_text(self, range_: Range) -> str:
        return self.text[self.offset_at(range_.start) : self.offset_at(range_.end)]

    def apply(self, edit: RepairEdit) -> str:
        """Return the text produced by applying one edit to this snapshot."""
        start = self.offset_at(edit.range.start)
        end = self.offset_at(edit.range.end)
        return self.text[:start] + edit.replacement_text + self.text[end:]
