"""Language profile shared by all supported runtimes."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Optional

from fix_dockerfile.schema import Distro, RuntimeKind


@dataclass
class LanguageProfile:
    """
    Images, install steps and detection heuristics for one runtime ecosystem.

    Profiles are built fresh for every cycle by the registry factories; the
    static inspection hook mutates the instance it is given and nothing else.
    """

    name: str
    images: list[str] = field(default_factory=list)  # most specific first
    install_commands: list[str] = field(default_factory=list)
    env_vars: list[str] = field(default_factory=list)
    runtimes: list[str] = field(default_factory=list)
    packages_list: Optional[str] = None
    ignored_paths: list[str] = field(default_factory=list)
    os_packages: list[str] = field(default_factory=list)
    build_packages: dict[Distro, list[str]] = field(default_factory=dict)
    native_build: bool = False
    runtime_kind: Optional[RuntimeKind] = None
    static_inspection: Optional[Callable[["LanguageProfile", Path], None]] = None

    @property
    def image(self) -> Optional[str]:
        return self.images[0] if self.images else None

    def inspect(self, source_tree: Path) -> "LanguageProfile":
        """Run the static inspection hook against a source tree."""
        if self.static_inspection is not None:
            self.static_inspection(self, source_tree)
        return self

    def add_os_packages(self, packages) -> None:
        for package in packages:
            if package not in self.os_packages:
                self.os_packages.append(package)

    def packages_for(self, distro: Distro) -> list[str]:
        """OS packages to install on ``distro``, toolchain included for native builds."""
        packages = list(self.os_packages)
        if self.native_build:
            packages += [p for p in self.build_packages.get(distro, []) if p not in packages]
        return packages

    def dockerignore(self) -> str:
        """Content for a generated .dockerignore."""
        return "\n".join(self.ignored_paths) + ("\n" if self.ignored_paths else "")
