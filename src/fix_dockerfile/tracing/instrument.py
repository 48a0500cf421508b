"""Instrumented build file and traced start command."""

import shlex
from typing import Optional

from fix_dockerfile.constants import STRACE_COMMAND
from fix_dockerfile.dockerfile import Dockerfile, Instruction
from fix_dockerfile.document import detect_newline
from fix_dockerfile.errors import TraceError
from fix_dockerfile.schema import Distro

STRACE_INSTALL = {
    Distro.DEBIAN: "apt-get update && apt-get install -y --no-install-recommends strace && rm -rf /var/lib/apt/lists/*",
    Distro.ALPINE: "apk add --no-cache strace",
}

SHELL = ["/bin/sh", "-c"]


def instrument_dockerfile(text: str, distro: Distro) -> str:
    """The user's build file plus the steps that make ``strace`` available."""
    newline = detect_newline(text)
    body = text.rstrip("\r\n")
    lines = [body, "USER root", f"RUN {STRACE_INSTALL[distro]}"]
    return newline.join(lines) + newline


def _exec_form(instruction: Instruction) -> Optional[list[str]]:
    return instruction.json_arguments()


def container_command(dockerfile: Dockerfile, start_command: Optional[str] = None) -> list[str]:
    """
    Argv of the traced program.

    An explicit command wins. Otherwise ENTRYPOINT and CMD combine the way the
    engine would: exec forms are kept verbatim, shell forms run under
    ``/bin/sh -c``, and a shell-form ENTRYPOINT ignores CMD.

    Raises:
        TraceError: If nothing tells what to run
    """
    if start_command:
        return shlex.split(start_command)

    entrypoints = dockerfile.instructions_with_keyword("ENTRYPOINT")
    cmds = dockerfile.instructions_with_keyword("CMD")
    entrypoint = entrypoints[-1] if entrypoints else None
    cmd = cmds[-1] if cmds else None

    def argv(instruction: Instruction) -> list[str]:
        exec_form = _exec_form(instruction)
        if exec_form is not None:
            return exec_form
        return SHELL + [instruction.joined_args_text]

    if entrypoint is not None:
        if _exec_form(entrypoint) is None:
            return argv(entrypoint)
        return argv(entrypoint) + (argv(cmd) if cmd is not None else [])
    if cmd is not None:
        return argv(cmd)

    raise TraceError(
        "No start command: pass one explicitly or declare ENTRYPOINT/CMD in the Dockerfile"
    )


def traced_entrypoint() -> list[str]:
    return list(STRACE_COMMAND)


def attach_command(duration: int, pid: int = 1) -> list[str]:
    """Command that traces an already running process for ``duration`` seconds."""
    return ["timeout", str(duration), *STRACE_COMMAND, "-p", str(pid)]
