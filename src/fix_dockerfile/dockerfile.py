"""
Instruction-level view of a Dockerfile.

A lenient scanner: it splits the text into instructions (honouring line
continuations and comments) and tokenises arguments with their source ranges.
It does not validate instructions; malformed lines simply become instructions
with odd arguments.
"""

import json
import re
import shlex
from dataclasses import dataclass, field
from typing import Optional

from fix_dockerfile.document import TextDocument
from fix_dockerfile.schema import Distro, Position, Range

ESCAPE_CHAR = "\\"

_TOKEN_RE = re.compile(r"""(?:"(?:\\.|[^"\\])*"|'[^']*'|[^\s"']+|["'])+""")
_KEYWORD_RE = re.compile(r"\S+")
_CONTINUATION_RE = re.compile(r"\\[ \t]*\r?\n")


@dataclass
class Argument:
    """One whitespace-separated argument of an instruction."""

    value: str
    range: Range

    @property
    def unquoted(self) -> str:
        if len(self.value) >= 2 and self.value[0] == self.value[-1] and self.value[0] in "\"'":
            return self.value[1:-1]
        return self.value


@dataclass
class Instruction:
    """A (possibly multi-line) Dockerfile instruction."""

    keyword: str
    raw_keyword: str
    keyword_range: Range
    range: Range
    text: str
    arguments: list[Argument] = field(default_factory=list)

    def values(self) -> list[str]:
        return [arg.value for arg in self.arguments]

    @property
    def args_text(self) -> str:
        """Source text after the keyword, continuations included."""
        return self.text[len(self.raw_keyword) :].strip()

    @property
    def joined_args_text(self) -> str:
        """args_text with line continuations folded into spaces."""
        return _CONTINUATION_RE.sub(" ", self.args_text)

    @property
    def is_json_form(self) -> bool:
        return self.json_arguments() is not None

    def json_arguments(self) -> Optional[list[str]]:
        """Arguments of the exec (JSON) form, or None for the shell form."""
        text = self.args_text
        if not text.startswith("["):
            return None
        try:
            parsed = json.loads(text)
        except json.JSONDecodeError:
            return None
        if not isinstance(parsed, list) or not all(isinstance(x, str) for x in parsed):
            return None
        return parsed

    def command_text(self) -> str:
        """Shell text of a RUN/CMD/ENTRYPOINT. Exec form is converted with shlex."""
        json_args = self.json_arguments()
        if json_args is not None:
            return shlex.join(json_args)
        return self.args_text

    # ------------------------------------------------------------------
    # FROM accessors
    # ------------------------------------------------------------------

    @property
    def flags(self) -> list[str]:
        return [arg.value for arg in self.arguments if arg.value.startswith("--")]

    def image_reference(self) -> Optional[str]:
        for arg in self.arguments:
            if not arg.value.startswith("--"):
                return arg.value
        return None

    @property
    def image(self) -> Optional[str]:
        """Image reference without tag or digest, e.g. ``library/python``."""
        reference = self.image_reference()
        if reference is None:
            return None
        reference = reference.split("@", 1)[0]
        slash = reference.rfind("/")
        colon = reference.rfind(":")
        if colon > slash:
            reference = reference[:colon]
        return reference

    @property
    def image_name(self) -> Optional[str]:
        image = self.image
        return image.rsplit("/", 1)[-1] if image else None

    @property
    def image_tag(self) -> Optional[str]:
        reference = self.image_reference()
        if reference is None:
            return None
        reference = reference.split("@", 1)[0]
        slash = reference.rfind("/")
        colon = reference.rfind(":")
        if colon > slash:
            return reference[colon + 1 :] or None
        return None

    @property
    def stage_name(self) -> Optional[str]:
        values = [v for v in self.values() if not v.startswith("--")]
        if len(values) >= 3 and values[1].upper() == "AS":
            return values[2]
        return None


class Dockerfile:
    """Parsed Dockerfile: the instruction list plus the text snapshot it came from."""

    def __init__(self, document: TextDocument, instructions: list[Instruction]):
        self.document = document
        self.instructions = instructions

    @property
    def text(self) -> str:
        return self.document.text

    def instructions_with_keyword(self, keyword: str) -> list[Instruction]:
        keyword = keyword.upper()
        return [i for i in self.instructions if i.keyword == keyword]

    def run_instructions_with_arg(self, arg: str) -> list[Instruction]:
        return [i for i in self.instructions_with_keyword("RUN") if arg in i.values()]

    @property
    def froms(self) -> list[Instruction]:
        return self.instructions_with_keyword("FROM")

    @property
    def copies(self) -> list[Instruction]:
        return self.instructions_with_keyword("COPY")

    @property
    def exposes(self) -> list[Instruction]:
        return self.instructions_with_keyword("EXPOSE")

    @property
    def last_instruction(self) -> Optional[Instruction]:
        return self.instructions[-1] if self.instructions else None


def _is_comment(line: str) -> bool:
    return line.lstrip().startswith("#")


def _continues(line: str) -> bool:
    return line.rstrip().endswith(ESCAPE_CHAR)


def _tokenize(line_no: int, offset: int, segment: str) -> list[Argument]:
    return [
        Argument(
            value=match.group(0),
            range=Range.from_coords(
                line_no, offset + match.start(), line_no, offset + match.end()
            ),
        )
        for match in _TOKEN_RE.finditer(segment)
    ]


def parse_dockerfile(text: str) -> Dockerfile:
    """Split a Dockerfile into instructions with argument ranges."""
    document = TextDocument(text)
    instructions: list[Instruction] = []

    line_no = 0
    while line_no < document.line_count:
        line = document.line_text(line_no)
        if not line.strip() or _is_comment(line):
            line_no += 1
            continue

        keyword_match = _KEYWORD_RE.search(line)
        raw_keyword = keyword_match.group(0)
        keyword_start = Position(line=line_no, character=keyword_match.start())
        keyword_end = Position(line=line_no, character=keyword_match.end())

        arguments: list[Argument] = []
        segment_line = line_no
        segment_offset = keyword_match.end()
        segment = line[segment_offset:]

        while True:
            continued = _continues(segment)
            if continued:
                stripped = segment.rstrip()
                segment = stripped[: len(stripped) - len(ESCAPE_CHAR)]
            arguments.extend(_tokenize(segment_line, segment_offset, segment))
            if not continued:
                break

            # Comment and blank lines inside a continuation are skipped.
            segment_line += 1
            while segment_line < document.line_count:
                line = document.line_text(segment_line)
                if line.strip() and not _is_comment(line):
                    break
                segment_line += 1
            if segment_line >= document.line_count:
                break
            segment_offset = 0
            segment = line

        end = arguments[-1].range.end if arguments else keyword_end
        instruction_range = Range(start=keyword_start, end=end)
        instructions.append(
            Instruction(
                keyword=raw_keyword.upper(),
                raw_keyword=raw_keyword,
                keyword_range=Range(start=keyword_start, end=keyword_end),
                range=instruction_range,
                text=document.get_text(instruction_range),
                arguments=arguments,
            )
        )
        line_no = max(segment_line, end.line) + 1

    return Dockerfile(document, instructions)


def detect_distro(dockerfile: Dockerfile) -> Distro:
    """
    OS family of the build: Alpine when the first FROM names an alpine image
    or tag, or when any instruction calls ``apk``. Debian otherwise.
    """
    froms = dockerfile.froms
    if not froms:
        return Distro.DEBIAN
    first = froms[0]
    if "alpine" in (first.image_tag or "") or "alpine" in (first.image_name or ""):
        return Distro.ALPINE
    for instruction in dockerfile.instructions:
        if "apk" in instruction.values():
            return Distro.ALPINE
    return Distro.DEBIAN
