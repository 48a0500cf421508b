"""Static checks whose problems all have an automatic repair."""

from typing import Optional

from fix_dockerfile.dockerfile import Argument, Dockerfile, Instruction
from fix_dockerfile.reconcile import (
    SHELL_AND,
    create_repair_diagnostic,
    range_after_from,
    range_before_end,
)
from fix_dockerfile.schema import DiagnosticSource, Position, Range, RepairCode, RepairDiagnostic

NO_ROOT_USER_MSG = (
    "A user other than root should be used. Running applications as root could lead "
    "to security problems if vulnerabilities in the project are exploited."
)
NO_ROOT_DIR_MSG = (
    "A working directory other than / should be used. This makes the directory structure "
    "more organized and keeps other files separate from the application's code."
)
SINGLE_COPY_MSG = (
    "Two COPY instructions should be used, one to copy the files required for installing "
    "dependencies and another to copy the rest of the source code files. This way Docker's "
    "layer caching can be used."
)
NO_IMAGE_PIN_MSG = (
    "The version of the base image should be pinned to improve stability, speed and security."
)
NO_CACHE_MSG = (
    "The --no-cache option should be used when installing packages with APK. This prevents "
    "APK from storing a cache, making the container smaller."
)
F_CURL_MSG = "The -f option should be used with curl to avoid errors if the request fails."
NO_HTTP_URL_MSG = (
    "HTTPS URLs should be used instead of HTTP URLs. HTTPS provides encryption, making the "
    "connection more secure."
)
NO_CD_MSG = (
    "The working directory is not preserved between RUN instruction. "
    "Use the WORKDIR instruction instead."
)
NO_ADD_MSG = (
    "The COPY instruction should be used instead of the ADD instruction, if possible. The ADD "
    "instruction has more features which can make its usage harder to understand."
)
NO_MAINTAINER_MSG = "The MAINTAINER instruction has been deprecated."
CONSECUTIVE_RUN_MSG = "Consecutive RUN instructions should be merged to minimize the number of layers."
APT_LIST_MSG = (
    "The list of packages should be removed after performing an installation to reduce "
    "wasted space."
)
NO_INSTALL_RECOMMENDS_MSG = (
    "The --no-install-recommends option should be used with apt-get install. This keeps "
    "recommended packages from being installed, reducing wasted space."
)
UPDATE_BEFORE_INSTALL_MSG = (
    "The apt-get update command should be executed before apt-get install. This allows APT "
    "to update the list of packages."
)
CONFIRM_INSTALL_MSG = (
    "The -y option should be used with apt-get install. This allows packages to be installed "
    "without prompting the user for confirmation."
)

APT_LISTS_REMOVAL = "rm -rf /var/lib/apt/lists/*"


def _diagnostic(range_: Range, message: str, code: RepairCode) -> RepairDiagnostic:
    return create_repair_diagnostic(range_, message, code, source=DiagnosticSource.STATIC_RULE)


def _between(first: Argument, last: Argument) -> Range:
    return Range(start=first.range.start, end=last.range.end)


def _at_command_start(args: list[Argument], index: int) -> bool:
    return index == 0 or args[index - 1].value == SHELL_AND


# ---------------------------------------------------------
# apt-get
# ---------------------------------------------------------


def _apt_install_pair(args: list[Argument]) -> Optional[tuple[Argument, Argument]]:
    pair = None
    for arg, nxt in zip(args, args[1:]):
        if arg.value == "apt-get" and nxt.value == "install":
            pair = (arg, nxt)
    return pair


def check_apt_problems(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    for instruction in dockerfile.run_instructions_with_arg("apt-get"):
        args = instruction.arguments
        pair = _apt_install_pair(args)
        if pair is None:
            continue
        range_ = _between(*pair)
        values = instruction.values()

        if "--no-install-recommends" not in values:
            problems.append(_diagnostic(range_, NO_INSTALL_RECOMMENDS_MSG, RepairCode.NOINSTALLRECOMMENDS))
        if "update" not in values and "-y" in values:
            problems.append(_diagnostic(range_, UPDATE_BEFORE_INSTALL_MSG, RepairCode.UPDATEBEFOREINSTALL))
        if "-y" not in values:
            problems.append(_diagnostic(range_, CONFIRM_INSTALL_MSG, RepairCode.CONFIRMINSTALL))

        if APT_LISTS_REMOVAL not in " ".join(values):
            problems.append(_diagnostic(instruction.range, APT_LIST_MSG, RepairCode.APTLIST))
    return problems


# ---------------------------------------------------------
# Layering and deprecated instructions
# ---------------------------------------------------------


def check_consecutive_runs(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    instructions = dockerfile.instructions
    for previous, current in zip(instructions, instructions[1:]):
        if previous.keyword == current.keyword == "RUN":
            range_ = Range(start=previous.range.start, end=current.range.end)
            problems.append(_diagnostic(range_, CONSECUTIVE_RUN_MSG, RepairCode.CONSECUTIVERUN))
    return problems


def check_unsuitable_instructions(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    for instruction in dockerfile.instructions_with_keyword("ADD"):
        start = instruction.range.start
        range_ = Range(start=start, end=Position(line=start.line, character=start.character + 3))
        problems.append(_diagnostic(range_, NO_ADD_MSG, RepairCode.NOADD))
    for instruction in dockerfile.instructions_with_keyword("MAINTAINER"):
        problems.append(_diagnostic(instruction.range, NO_MAINTAINER_MSG, RepairCode.NOMAINTAINER))
    return problems


def check_cd_usage(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    for instruction in dockerfile.instructions_with_keyword("RUN"):
        args = instruction.arguments
        if len(args) == 2 and args[0].value == "cd":
            range_ = Range(start=instruction.range.start, end=args[0].range.end)
            problems.append(_diagnostic(range_, NO_CD_MSG, RepairCode.NOCD))
    return problems


# ---------------------------------------------------------
# Network utilities
# ---------------------------------------------------------


def check_network_utils(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    url_checked: list[Instruction] = []

    for instruction in dockerfile.run_instructions_with_arg("curl"):
        args = instruction.arguments
        url_index = max(
            (i for i, arg in enumerate(args) if arg.value.startswith("http")), default=-1
        )
        for index, arg in enumerate(args):
            if arg.value != "curl" or not _at_command_start(args, index):
                continue
            if url_index <= index:
                continue
            if instruction not in url_checked:
                url_checked.append(instruction)
            if "-f" not in [a.value for a in args[index:url_index]]:
                problems.append(_diagnostic(arg.range, F_CURL_MSG, RepairCode.FCURL))

    for instruction in dockerfile.run_instructions_with_arg("wget"):
        if instruction not in url_checked:
            url_checked.append(instruction)

    for instruction in url_checked:
        url = next((arg for arg in instruction.arguments if "http" in arg.value), None)
        if url is not None and "https" not in url.value:
            problems.append(_diagnostic(url.range, NO_HTTP_URL_MSG, RepairCode.NOHTTPURL))
    return problems


def check_apk_problems(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    problems = []
    for instruction in dockerfile.run_instructions_with_arg("apk"):
        args = instruction.arguments
        apk = next(arg for arg in args if arg.value == "apk")
        add = next((arg for arg in args if arg.value == "add"), None)
        if add is None:
            continue
        if "--no-cache" not in instruction.values():
            problems.append(_diagnostic(_between(apk, add), NO_CACHE_MSG, RepairCode.NOCACHE))
    return problems


# ---------------------------------------------------------
# Image and file layout
# ---------------------------------------------------------


def check_version_pinning(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    # FROM scratch and stage references have no tag to pin
    stages = {f.stage_name for f in dockerfile.froms if f.stage_name}
    return [
        _diagnostic(instruction.range, NO_IMAGE_PIN_MSG, RepairCode.NOIMAGEPIN)
        for instruction in dockerfile.froms
        if instruction.image_reference()
        and instruction.image_tag is None
        and "@" not in instruction.image_reference()
        and instruction.image not in stages
        and instruction.image != "scratch"
    ]


def check_copies(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    last = dockerfile.last_instruction
    if last is None or last.keyword == "COPY":
        return []
    copies = dockerfile.copies
    if len(copies) == 1:
        return [_diagnostic(copies[0].range, SINGLE_COPY_MSG, RepairCode.SINGLECOPY)]
    return []


def check_instruction_presence(
    dockerfile: Dockerfile, keyword: str, at_beginning: bool, message: str, code: RepairCode
) -> list[RepairDiagnostic]:
    if dockerfile.instructions_with_keyword(keyword):
        return []
    range_ = range_after_from(dockerfile) if at_beginning else range_before_end(dockerfile)
    return [_diagnostic(range_, message, code)] if range_ else []


def check_repairable_problems(dockerfile: Dockerfile) -> list[RepairDiagnostic]:
    """All static-rule diagnostics of a Dockerfile, in a stable order."""
    problems: list[RepairDiagnostic] = []
    problems += check_apt_problems(dockerfile)
    problems += check_consecutive_runs(dockerfile)
    problems += check_unsuitable_instructions(dockerfile)
    problems += check_cd_usage(dockerfile)
    problems += check_network_utils(dockerfile)
    problems += check_apk_problems(dockerfile)
    problems += check_version_pinning(dockerfile)
    problems += check_copies(dockerfile)
    problems += check_instruction_presence(
        dockerfile, "WORKDIR", True, NO_ROOT_DIR_MSG, RepairCode.NOROOTDIR
    )
    problems += check_instruction_presence(
        dockerfile, "USER", False, NO_ROOT_USER_MSG, RepairCode.NOROOTUSER
    )
    return problems
