"""
Repair registry: one generator per diagnostic code.

Generators receive a ``RepairContext`` built from a single text snapshot and
return a ``RepairEdit`` or None when the repair cannot be applied.
"""

from dataclasses import dataclass
from typing import Callable, Optional

from fix_dockerfile.dockerfile import Dockerfile, Instruction
from fix_dockerfile.document import TextDocument
from fix_dockerfile.schema import (
    Position,
    Range,
    RepairCode,
    RepairDiagnostic,
    RepairEdit,
    RuntimeKind,
)
from fix_dockerfile.synthesizer import SynthesizedDockerfile


@dataclass
class RepairContext:
    """Everything a generator may look at. Nothing in it is mutated."""

    diagnostic: RepairDiagnostic
    document: TextDocument
    dockerfile: Dockerfile
    runtime_kind: RuntimeKind
    alternative: Optional[SynthesizedDockerfile] = None

    @property
    def code(self) -> RepairCode:
        return RepairCode(self.diagnostic.code)

    @property
    def newline(self) -> str:
        return self.document.newline

    @property
    def range(self) -> Range:
        return self.diagnostic.range

    @property
    def text(self) -> str:
        """Text covered by the diagnostic."""
        return self.document.get_text(self.diagnostic.range)

    def instruction_at(self, position: Position) -> Optional[Instruction]:
        for instruction in self.dockerfile.instructions:
            if instruction.range.start == position:
                return instruction
        return None

    def replace(self, replacement: str, range_: Optional[Range] = None) -> RepairEdit:
        return RepairEdit(
            range=range_ or self.diagnostic.range,
            replacement_text=replacement,
            code=self.code,
            title=TITLES.get(self.code, ""),
        )

    # ------------------------------------------------------------------
    # Line-level edits
    # ------------------------------------------------------------------

    def insertion(self, line: int, lines: list[str]) -> tuple[Range, str]:
        """Range and text that insert whole lines in front of ``line``."""
        body = self.newline.join(lines)
        if line < self.document.line_count and self.document.offset_at(
            Position(line=line, character=0)
        ) < len(self.document.text):
            return Range.empty_at(Position(line=line, character=0)), body + self.newline
        end = self.document.end_position()
        if self.document.text and not self.document.text.endswith("\n"):
            return Range.empty_at(end), self.newline + body + self.newline
        return Range.empty_at(end), body + self.newline

    def line_removal(self, instruction: Instruction) -> Range:
        """Range covering the lines of an instruction, line terminator included."""
        start = Position(line=instruction.range.start.line, character=0)
        next_line = instruction.range.end.line + 1
        if next_line < self.document.line_count:
            return Range(start=start, end=Position(line=next_line, character=0))
        return Range(start=start, end=self.document.end_position())

    def combine(self, parts: list[tuple[Range, str]]) -> RepairEdit:
        """
        Fold several edits on the snapshot into one edit over their union.

        Parts must not overlap; their order does not matter.
        """
        offsets = sorted(
            (
                self.document.offset_at(range_.start),
                self.document.offset_at(range_.end),
                text,
            )
            for range_, text in parts
        )
        first, last = offsets[0][0], max(end for _, end, _ in offsets)
        pieces = []
        cursor = first
        for start, end, text in offsets:
            pieces.append(self.document.text[cursor:start])
            pieces.append(text)
            cursor = end
        pieces.append(self.document.text[cursor:last])
        union = Range(start=self.document.position_at(first), end=self.document.position_at(last))
        return self.replace("".join(pieces), union)


RepairFunction = Callable[[RepairContext], Optional[RepairEdit]]

REPAIRS: dict[RepairCode, RepairFunction] = {}
TITLES: dict[RepairCode, str] = {}


def register(code: RepairCode, title: str) -> Callable[[RepairFunction], RepairFunction]:
    """Register the generator of ``code``. A code can be registered only once."""

    def decorator(func: RepairFunction) -> RepairFunction:
        if code in REPAIRS:
            raise ValueError(f"Repair for {code} already registered by {REPAIRS[code].__name__}")
        REPAIRS[code] = func
        TITLES[code] = title
        return func

    return decorator


def verify_registry() -> None:
    missing = [code.value for code in RepairCode if code not in REPAIRS]
    if missing:
        raise RuntimeError(f"No repair registered for: {', '.join(missing)}")
