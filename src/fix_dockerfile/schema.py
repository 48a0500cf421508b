"""Data models and schemas for fix-dockerfile."""

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

# ============================================================================
# Enums
# ============================================================================


class DiagnosticSeverity(StrEnum):
    """Severity of a repair diagnostic."""

    WARNING = "warning"
    ERROR = "error"


class DiagnosticSource(StrEnum):
    """Which checker produced a diagnostic."""

    STATIC_RULE = "static-rule"
    TRACE_RECONCILIATION = "trace-reconciliation"


class RuntimeKind(StrEnum):
    """Runtime of the containerised application, used to pick users and images."""

    PYTHON = "python"
    NODE = "node"


class Distro(StrEnum):
    """OS family of the base image. Decides between apt-get and apk."""

    DEBIAN = "debian"
    ALPINE = "alpine"

    @property
    def package_manager(self) -> str:
        return "apk" if self is Distro.ALPINE else "apt-get"

    @property
    def install_keyword(self) -> str:
        return "add" if self is Distro.ALPINE else "install"


# ============================================================================
# Repair codes (wire contract, never translated)
# ============================================================================

CODE_PREFIX = "R:"


class RepairCode(StrEnum):
    """Stable diagnostic codes. Each one has exactly one repair generator."""

    HERMITDEPS = "R:HERMITDEPS"
    HERMITPORTS = "R:HERMITPORTS"
    HERMITLANGDEPS = "R:HERMITLANGDEPS"
    NOROOTUSER = "R:NOROOTUSER"
    SINGLECOPY = "R:SINGLECOPY"
    APTLIST = "R:APTLIST"
    CONSECUTIVERUN = "R:CONSECUTIVERUN"
    NOIMAGEPIN = "R:NOIMAGEPIN"
    NOCACHE = "R:NOCACHE"
    FCURL = "R:FCURL"
    NOHTTPURL = "R:NOHTTPURL"
    NOCD = "R:NOCD"
    NOADD = "R:NOADD"
    NOMAINTAINER = "R:NOMAINTAINER"
    NOROOTDIR = "R:NOROOTDIR"
    NOINSTALLRECOMMENDS = "R:NOINSTALLRECOMMENDS"
    UPDATEBEFOREINSTALL = "R:UPDATEBEFOREINSTALL"
    CONFIRMINSTALL = "R:CONFIRMINSTALL"

    @classmethod
    def from_suffix(cls, suffix: str) -> "RepairCode":
        return cls(CODE_PREFIX + suffix)


# ============================================================================
# Text positions (LSP style, zero-based)
# ============================================================================


class Position(BaseModel):
    """A zero-based (line, character) position in a document."""

    model_config = ConfigDict(frozen=True)

    line: int = Field(ge=0, description="Zero-based line number")
    character: int = Field(ge=0, description="Zero-based character offset in the line")


class Range(BaseModel):
    """A half-open span between two positions of the same document."""

    model_config = ConfigDict(frozen=True)

    start: Position
    end: Position

    @classmethod
    def from_coords(
        cls, start_line: int, start_character: int, end_line: int, end_character: int
    ) -> "Range":
        return cls(
            start=Position(line=start_line, character=start_character),
            end=Position(line=end_line, character=end_character),
        )

    @classmethod
    def empty_at(cls, position: Position) -> "Range":
        """Zero-length range, i.e. an insertion point."""
        return cls(start=position, end=position)

    @property
    def is_empty(self) -> bool:
        return self.start == self.end


# ============================================================================
# Wire models (diagnostics and edits exchanged with the editor shell)
# ============================================================================


class RepairDiagnostic(BaseModel):
    """A coded problem anchored on the original document."""

    model_config = ConfigDict(
        frozen=True,
        json_schema_extra={
            "example": {
                "range": {
                    "start": {"line": 2, "character": 0},
                    "end": {"line": 2, "character": 3},
                },
                "message": "Some ports that could be exposed were detected.",
                "code": "R:HERMITPORTS",
                "severity": "warning",
                "source": "trace-reconciliation",
            }
        },
    )

    range: Range = Field(description="Span over the original document")
    message: str = Field(description="Human readable explanation")
    code: str = Field(description="Stable repair code, e.g. R:HERMITPORTS")
    severity: DiagnosticSeverity = Field(default=DiagnosticSeverity.WARNING)
    source: DiagnosticSource = Field(description="Checker that produced it")


class RepairEdit(BaseModel):
    """A single text replacement over the original document."""

    model_config = ConfigDict(frozen=True)

    range: Range = Field(description="Span of the original document to replace")
    replacement_text: str = Field(description="Text inserted in place of the range")
    code: str = Field(description="Code of the diagnostic this edit repairs")
    title: str = Field(default="", description="Short description of the repair")


# ============================================================================
# Execution Models (for the container engine)
# ============================================================================


class CommandResult(BaseModel):
    """Result of a command executed inside a container."""

    exit_code: int = Field(description="Exit code of the command")
    stdout: str = Field(default="", description="Standard output")
    stderr: str = Field(default="", description="Standard error")
    success: bool = Field(description="Whether command succeeded")
    command: str = Field(description="Command that was executed")

    @property
    def output(self) -> str:
        """Get combined output (prefer stderr for errors, stdout otherwise)."""
        if not self.success and self.stderr:
            return self.stderr
        return self.stdout or self.stderr


# ============================================================================
# Trace records and extracted features
# ============================================================================


@dataclass(frozen=True)
class SyscallRecord:
    """One traced system call.

    ``args`` keeps struct-typed arguments as dicts keyed by field name, and
    macro-style values such as ``htons(5000)`` as ``{"call": "htons", "params": [5000]}``,
    so callers can address ``args[1]["sin6_port"]`` without a C struct decoder.
    """

    name: str
    args: tuple[Any, ...]
    result: int
    timing_micros: float = 0.0
    pid: int = 0
    kind: Literal["SYSCALL"] = "SYSCALL"


@dataclass
class FeatureSet:
    """Features observed for one cycle. Only these leave the feature extractor.

    ``packages`` is None when the package query degraded; the synthesizer then
    carries the declared package steps over unchanged.
    """

    ports: list[int] = field(default_factory=list)
    packages: Optional[list[str]] = None
    distro: Distro = Distro.DEBIAN
    base_image: Optional[str] = None
