"""
Reconciliation: declared Dockerfile vs. the synthesized alternative.

Pure functions over two parsed files. Every range points into the original
document; a missing anchor means no diagnostic, never an exception.
"""

from typing import Optional, Union

from fix_dockerfile.dockerfile import Dockerfile, Instruction, detect_distro
from fix_dockerfile.schema import (
    DiagnosticSeverity,
    DiagnosticSource,
    Range,
    RepairCode,
    RepairDiagnostic,
)
from fix_dockerfile.synthesizer import SynthesizedDockerfile
from fix_dockerfile.utils import ui

ANCHOR_WIDTH = 3
SHELL_AND = "&&"

PORTS_MISSING_MSG = "Some ports that could be exposed were detected."
PORTS_MISMATCH_MSG = "Some mistakes were detected with the ports being exposed."
PORTS_SUFFIX = " The following port(s) should be exposed: {ports}."

DEPS_MISSING_MSG = "Some dependencies that are missing from this Dockerfile have been detected."
DEPS_MISMATCH_MSG = "The dependencies being installed don't match the detected ones."
DEPS_UNNECESSARY_MSG = (
    "Some dependencies are being installed unnecessarily. "
    "No dependencies need to be installed using the system's package manager."
)
DEPS_SUFFIX = " The following dependencies should be installed: {deps}."

LANG_DEPS_MSG = (
    "Some commands that are needed to install dependencies "
    "from the language's package manager are missing."
)

LANGUAGE_INSTALLERS: dict[str, tuple[str, ...]] = {
    "node": ("npm",),
    "python": ("pip", "pip3"),
}


def create_repair_diagnostic(
    range_: Range,
    message: str,
    code: RepairCode,
    source: DiagnosticSource = DiagnosticSource.TRACE_RECONCILIATION,
) -> RepairDiagnostic:
    return RepairDiagnostic(
        range=range_,
        message=message,
        code=code,
        severity=DiagnosticSeverity.WARNING,
        source=source,
    )


# ---------------------------------------------------------
# Anchors
# ---------------------------------------------------------


def _line_anchor(line: int) -> Optional[Range]:
    if line < 0:
        return None
    return Range.from_coords(line, 0, line, ANCHOR_WIDTH)


def range_after_from(dockerfile: Dockerfile) -> Optional[Range]:
    if not dockerfile.froms or len(dockerfile.instructions) <= 1:
        return None
    return _line_anchor(dockerfile.froms[0].range.end.line + 1)


def range_before_end(dockerfile: Dockerfile) -> Optional[Range]:
    if len(dockerfile.instructions) <= 1:
        return None
    return _line_anchor(dockerfile.last_instruction.range.start.line - 1)


def range_after_copy(dockerfile: Dockerfile) -> Optional[Range]:
    if not dockerfile.copies or len(dockerfile.instructions) <= 1:
        return None
    return _line_anchor(dockerfile.copies[0].range.end.line + 1)


def span(instructions: list[Instruction]) -> Range:
    return Range(start=instructions[0].range.start, end=instructions[-1].range.end)


# ---------------------------------------------------------
# Dependency tokenizer
# ---------------------------------------------------------


def install_keyword_for(package_manager: str) -> str:
    return "add" if package_manager == "apk" else "install"


def gather_dependencies(args: list[str], package_manager: str) -> list[str]:
    """
    Package names from the arguments of one RUN.

    Gathering starts after ``apt-get install`` / ``apk add``, stops at ``&&``,
    and skips flags; ``apt-get update`` installs nothing.
    """
    second_keyword = install_keyword_for(package_manager)
    deps: list[str] = []
    gathering = False
    i = 0
    while i < len(args):
        arg = args[i]
        nxt = args[i + 1] if i + 1 < len(args) else None
        i += 1
        if not arg:
            continue
        if arg == SHELL_AND:
            gathering = False
        if arg.startswith("-"):
            continue
        if gathering:
            deps.append(arg)
        if arg == package_manager and nxt == "update":
            continue
        if arg == package_manager and nxt == second_keyword:
            gathering = True
            i += 1
    return deps


def dependencies_from(instructions: list[Instruction], package_manager: str) -> list[str]:
    deps: list[str] = []
    for instruction in instructions:
        deps += gather_dependencies(instruction.values(), package_manager)
    return deps


def _segments(instruction: Instruction, package_manager: str) -> list[tuple[int, int]]:
    """(first, last) argument indexes of each ``&&``-separated package manager call."""
    args = instruction.arguments
    segments = []
    start = None
    for index, arg in enumerate(args):
        if arg.value == SHELL_AND:
            if start is not None:
                segments.append((start, index - 1))
                start = None
            continue
        at_command_start = index == 0 or args[index - 1].value == SHELL_AND
        if arg.value == package_manager and at_command_start:
            start = index
    if start is not None:
        segments.append((start, len(args) - 1))
    return segments


def _installs(instruction: Instruction, segment: tuple[int, int], package_manager: str) -> bool:
    first, last = segment
    return last > first and instruction.arguments[first + 1].value == install_keyword_for(package_manager)


def restrict_range(instruction: Instruction, package_manager: str) -> Optional[Range]:
    """
    Range of the package manager call inside a RUN: the install call when
    there is one, otherwise the last call. None when the RUN has none.
    """
    segments = _segments(instruction, package_manager)
    if not segments:
        return None
    chosen = next(
        (s for s in segments if _installs(instruction, s, package_manager)), segments[-1]
    )
    first, last = chosen
    return Range(
        start=instruction.arguments[first].range.start,
        end=instruction.arguments[last].range.end,
    )


def anchor_package_instruction(instructions: list[Instruction], package_manager: str) -> Instruction:
    """The first RUN that installs packages, else the first package manager RUN."""
    for instruction in instructions:
        if any(
            _installs(instruction, s, package_manager)
            for s in _segments(instruction, package_manager)
        ):
            return instruction
    return instructions[0]


def is_dependency_needed(dependency: str, dockerfile: Dockerfile) -> bool:
    """
    Whether a RUN calls a command whose name is contained in ``dependency``.

    Heuristic: ``curl`` is needed by ``RUN curl ...``; so is ``libcurl`` by
    the same RUN, which may keep packages the program no longer uses.
    """
    for instruction in dockerfile.instructions_with_keyword("RUN"):
        values = instruction.values()
        for index, value in enumerate(values):
            if value and value in dependency and (index == 0 or values[index - 1] == SHELL_AND):
                return True
    return False


def dependencies_match(original: list[str], synthesized: list[str], dockerfile: Dockerfile) -> bool:
    """True when no dependency diagnostic is needed."""
    if sorted(original) == sorted(synthesized):
        return True
    return bool(original) and all(is_dependency_needed(dep, dockerfile) for dep in original)


# ---------------------------------------------------------
# Checks
# ---------------------------------------------------------


def check_dependencies(original: Dockerfile, synthesized: Dockerfile) -> Optional[RepairDiagnostic]:
    package_manager = detect_distro(original).package_manager

    original_runs = original.run_instructions_with_arg(package_manager)
    synthesized_runs = synthesized.run_instructions_with_arg(package_manager)
    original_deps = dependencies_from(original_runs, package_manager)
    synthesized_deps = dependencies_from(synthesized_runs, package_manager)

    if synthesized_runs and not original_runs:
        range_ = range_after_from(original)
        if range_ is None or not synthesized_deps:
            return None
        return create_repair_diagnostic(
            range_,
            DEPS_MISSING_MSG + DEPS_SUFFIX.format(deps=",".join(synthesized_deps)),
            RepairCode.HERMITDEPS,
        )

    if synthesized_runs and original_runs:
        if dependencies_match(original_deps, synthesized_deps, original):
            return None
        anchor = anchor_package_instruction(original_runs, package_manager)
        range_ = restrict_range(anchor, package_manager) or span(original_runs)
        return create_repair_diagnostic(
            range_,
            DEPS_MISMATCH_MSG + DEPS_SUFFIX.format(deps=",".join(synthesized_deps)),
            RepairCode.HERMITDEPS,
        )

    if original_runs and not synthesized_runs:
        if dependencies_match(original_deps, synthesized_deps, original):
            return None
        return create_repair_diagnostic(span(original_runs), DEPS_UNNECESSARY_MSG, RepairCode.HERMITDEPS)

    return None


def normalize_port(value: str) -> str:
    return value[: -len("/tcp")] if value.lower().endswith("/tcp") else value


def exposed_ports(instructions: list[Instruction]) -> list[str]:
    ports: list[str] = []
    for instruction in instructions:
        for value in instruction.values():
            port = normalize_port(value)
            if port not in ports:
                ports.append(port)
    return ports


def check_ports(original: Dockerfile, synthesized: Dockerfile) -> Optional[RepairDiagnostic]:
    original_exposes = original.exposes
    synthesized_exposes = synthesized.exposes
    if not synthesized_exposes:
        return None

    synthesized_ports = exposed_ports(synthesized_exposes)
    if not synthesized_ports:
        return None
    suffix = PORTS_SUFFIX.format(ports=",".join(synthesized_ports))

    if not original_exposes:
        range_ = range_before_end(original)
        if range_ is None:
            return None
        return create_repair_diagnostic(range_, PORTS_MISSING_MSG + suffix, RepairCode.HERMITPORTS)

    original_ports = exposed_ports(original_exposes)
    if not original_ports or set(original_ports) == set(synthesized_ports):
        return None
    return create_repair_diagnostic(span(original_exposes), PORTS_MISMATCH_MSG + suffix, RepairCode.HERMITPORTS)


def check_language_dependencies(original: Dockerfile, synthesized: Dockerfile) -> Optional[RepairDiagnostic]:
    range_ = range_after_copy(original)
    if range_ is None:
        return None

    for language, installers in LANGUAGE_INSTALLERS.items():
        synthesized_has = any(synthesized.run_instructions_with_arg(k) for k in installers)
        original_has = any(original.run_instructions_with_arg(k) for k in installers)
        if synthesized_has and not original_has:
            ui.debug(f"{language} install commands missing from the Dockerfile")
            return create_repair_diagnostic(range_, LANG_DEPS_MSG, RepairCode.HERMITLANGDEPS)
    return None


def reconcile(
    original: Dockerfile, synthesized: Union[Dockerfile, SynthesizedDockerfile]
) -> list[RepairDiagnostic]:
    """At most one diagnostic per concern: dependencies, ports, language installs."""
    if isinstance(synthesized, SynthesizedDockerfile):
        synthesized = synthesized.dockerfile

    diagnostics = []
    for check in (check_dependencies, check_ports, check_language_dependencies):
        diagnostic = check(original, synthesized)
        if diagnostic is not None:
            diagnostics.append(diagnostic)
    return diagnostics
