"""
Alternative Dockerfile built from the declared one and the observed features.

The result is a comparison oracle for reconciliation, not a recommended file.
"""

from dataclasses import dataclass, field
from typing import Iterable, Optional

from fix_dockerfile.dockerfile import Dockerfile, Instruction, detect_distro, parse_dockerfile
from fix_dockerfile.features.languages.base import LanguageProfile
from fix_dockerfile.schema import Distro, FeatureSet

APT_LISTS_CLEANUP = "rm -rf /var/lib/apt/lists/*"


@dataclass
class SynthesizedDockerfile:
    """Alternative build file, parsed with the same accessors as the original."""

    text: str
    dockerfile: Dockerfile
    ports: list[int] = field(default_factory=list)
    packages: Optional[list[str]] = None
    language: Optional[str] = None

    @classmethod
    def from_text(cls, text: str) -> "SynthesizedDockerfile":
        return cls(text=text, dockerfile=parse_dockerfile(text))


def dedupe(items: Iterable[str]) -> list[str]:
    return list(dict.fromkeys(item for item in items if item))


def package_install_instruction(packages: list[str], distro: Distro, newline: str) -> str:
    """RUN that installs OS packages the way the static rules want it written."""
    names = " ".join(packages)
    if distro is Distro.ALPINE:
        return f"RUN apk add --no-cache {names}"
    return (
        f"RUN apt-get update && apt-get install -y --no-install-recommends {names} \\"
        f"{newline}\t&& {APT_LISTS_CLEANUP}"
    )


def command_heads(instruction: Instruction) -> list[str]:
    """First word of every ``&&``-separated command of a RUN."""
    values = instruction.values()
    return [
        value
        for index, value in enumerate(values)
        if index == 0 or values[index - 1] == "&&"
    ]


def _install_keywords(profile: LanguageProfile) -> set[str]:
    keywords = set()
    for command in profile.install_commands:
        for part in command.split("&&"):
            words = part.split()
            if words:
                keywords.add(words[0])
    return keywords


def _env_keys(instruction: Instruction) -> set[str]:
    values = instruction.values()
    if len(values) >= 2 and "=" not in values[0]:
        return {values[0]}
    return {value.split("=", 1)[0] for value in values if "=" in value}


def synthesize(original: Dockerfile, features: FeatureSet, profile: LanguageProfile) -> SynthesizedDockerfile:
    """
    Merge the declared instructions with what the trace and the source showed.

    - the declared OS-package RUNs are replaced by one RUN after the first FROM
      installing the profile's packages plus the observed ones
    - language install RUNs and ENVs go after the first COPY unless the
      declared file already runs the profile's installer
    - one EXPOSE per observed port goes before the final instruction,
      replacing the declared EXPOSEs

    Unknown packages (``features.packages is None``) keep the declared
    package steps; no observed port keeps the declared EXPOSEs.
    """
    newline = original.document.newline
    distro = detect_distro(original)
    package_manager = distro.package_manager

    packages: Optional[list[str]] = None
    if features.packages is not None:
        packages = dedupe([*profile.packages_for(distro), *features.packages])

    declared_heads = {
        head for run in original.instructions_with_keyword("RUN") for head in command_heads(run)
    }
    add_language_steps = bool(profile.install_commands) and not (
        _install_keywords(profile) & declared_heads
    )
    declared_env = set()
    for env in original.instructions_with_keyword("ENV"):
        declared_env |= _env_keys(env)
    language_steps = []
    if add_language_steps:
        language_steps += [f"RUN {command}" for command in profile.install_commands]
        language_steps += [
            f"ENV {env}" for env in profile.env_vars if env.split("=", 1)[0] not in declared_env
        ]

    expose_steps = [f"EXPOSE {port}" for port in features.ports]

    first_from = original.froms[0] if original.froms else None
    first_copy = original.copies[0] if original.copies else None
    final = original.last_instruction

    lines: list[str] = []
    for instruction in original.instructions:
        if instruction is final and instruction is not first_from:
            lines += expose_steps
            if first_copy is None:
                lines += language_steps
        if instruction.keyword == "EXPOSE" and expose_steps:
            continue
        if (
            instruction.keyword == "RUN"
            and packages is not None
            and package_manager in instruction.values()
        ):
            continue

        lines.append(instruction.text)

        if instruction is first_from and packages:
            lines.append(package_install_instruction(packages, distro, newline))
        if instruction is first_copy:
            lines += language_steps

    if final is None or final is first_from:
        lines += expose_steps
        if first_copy is None:
            lines += language_steps

    text = newline.join(lines) + newline if lines else ""
    return SynthesizedDockerfile(
        text=text,
        dockerfile=parse_dockerfile(text),
        ports=list(features.ports),
        packages=packages,
        language=profile.name,
    )
