"""
Language profile registry.

Profiles are keyed by the file extension of the program the container runs.
Every lookup builds a fresh profile, so hooks never leak state between cycles.
"""

import shlex
from pathlib import Path
from typing import Callable, Optional

from fix_dockerfile.dockerfile import Dockerfile, Instruction
from fix_dockerfile.features.languages.base import LanguageProfile
from fix_dockerfile.features.languages.node import node_profile
from fix_dockerfile.features.languages.python import python_profile
from fix_dockerfile.utils import ui

GENERIC = "generic"


def generic_profile() -> LanguageProfile:
    """Fallback with no install commands."""
    return LanguageProfile(name=GENERIC)


LANGUAGES: dict[str, Callable[[], LanguageProfile]] = {
    "py": python_profile,
    "js": node_profile,
    "mjs": node_profile,
    "cjs": node_profile,
}


def get_profile(extension: str) -> LanguageProfile:
    factory = LANGUAGES.get(extension.lstrip(".").lower())
    if factory is None:
        ui.warning(f"No language support for extension '{extension}', using generic profile")
        return generic_profile()
    return factory()


def _instruction_tokens(instruction: Optional[Instruction]) -> list[str]:
    if instruction is None:
        return []
    json_args = instruction.json_arguments()
    if json_args is not None:
        return json_args
    try:
        return shlex.split(instruction.joined_args_text)
    except ValueError:
        return instruction.values()


def start_command_tokens(dockerfile: Dockerfile, start_command: Optional[str] = None) -> list[str]:
    """The command the container runs: explicit command, else ENTRYPOINT + CMD."""
    if start_command:
        return shlex.split(start_command)
    entrypoints = dockerfile.instructions_with_keyword("ENTRYPOINT")
    cmds = dockerfile.instructions_with_keyword("CMD")
    return _instruction_tokens(entrypoints[-1] if entrypoints else None) + _instruction_tokens(
        cmds[-1] if cmds else None
    )


def inspect_language(
    source_tree: Path, dockerfile: Dockerfile, start_command: Optional[str] = None
) -> LanguageProfile:
    """
    Pick the language profile of the containerised program and run its hook.

    The entrypoint file's extension decides; a bare runtime binary such as
    ``node`` or ``python`` is the fallback. Anything else gets the generic
    profile and a warning.
    """
    tokens = start_command_tokens(dockerfile, start_command)

    for token in tokens:
        extension = Path(token).suffix.lstrip(".").lower()
        if extension in LANGUAGES:
            ui.debug(f"Entrypoint {token} selects the {extension} profile")
            return get_profile(extension).inspect(source_tree)

    for token in tokens:
        binary = Path(token).name
        for factory in dict.fromkeys(LANGUAGES.values()):
            profile = factory()
            if binary in profile.runtimes:
                ui.debug(f"Runtime binary {binary} selects the {profile.name} profile")
                return profile.inspect(source_tree)

    described = " ".join(tokens) or "<none>"
    ui.warning(f"Unsupported language for start command '{described}', using generic profile")
    return generic_profile()


__all__ = [
    "GENERIC",
    "LANGUAGES",
    "LanguageProfile",
    "generic_profile",
    "get_profile",
    "inspect_language",
    "node_profile",
    "python_profile",
    "start_command_tokens",
]
