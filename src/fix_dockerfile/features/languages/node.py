"""Node.js runtime profile."""

import json
from pathlib import Path

from fix_dockerfile.constants import DEFAULT_ENCODING
from fix_dockerfile.features.languages.base import LanguageProfile
from fix_dockerfile.schema import Distro, RuntimeKind
from fix_dockerfile.utils import ui

PACKAGE_JSON = "package.json"
LOCKFILES = ("package-lock.json", "npm-shrinkwrap.json")
BINDING_GYP = "binding.gyp"

INSTALL_FROM_LOCKFILE = "npm ci --omit=dev"
INSTALL_FROM_MANIFEST = "npm install --omit=dev"

BUILD_PACKAGES = {
    Distro.DEBIAN: ["python3", "make", "g++"],
    Distro.ALPINE: ["python3", "make", "g++"],
}

# dependencies that build through node-gyp when no prebuilt binary fits
NATIVE_DEPENDENCIES = {
    "bcrypt",
    "sqlite3",
    "better-sqlite3",
    "node-sass",
    "canvas",
    "argon2",
    "node-pty",
}


def declared_dependencies(package_json: Path) -> list[str]:
    """Names under dependencies/optionalDependencies. Unreadable manifests give []."""
    try:
        manifest = json.loads(package_json.read_text(encoding=DEFAULT_ENCODING))
    except (OSError, json.JSONDecodeError) as e:
        ui.warning(f"Could not read {package_json}: {e}")
        return []
    if not isinstance(manifest, dict):
        return []
    names: list[str] = []
    for section in ("dependencies", "optionalDependencies"):
        names.extend((manifest.get(section) or {}).keys())
    return names


def static_inspection(profile: LanguageProfile, source_tree: Path) -> None:
    if any((source_tree / name).exists() for name in LOCKFILES):
        profile.install_commands = [INSTALL_FROM_LOCKFILE]

    package_json = source_tree / PACKAGE_JSON
    dependencies = declared_dependencies(package_json) if package_json.exists() else []

    native = (source_tree / BINDING_GYP).exists() or bool(
        set(dependencies) & NATIVE_DEPENDENCIES
    )
    if native:
        ui.debug("Native addon build detected, adding node-gyp toolchain")
        profile.native_build = True


def node_profile() -> LanguageProfile:
    return LanguageProfile(
        name="node",
        images=["node:18-slim", "node:18-alpine"],
        install_commands=[INSTALL_FROM_MANIFEST],
        env_vars=["NODE_ENV=production"],
        runtimes=["node", "nodejs"],
        packages_list="nodepackages.txt",
        ignored_paths=["node_modules"],
        build_packages=BUILD_PACKAGES,
        runtime_kind=RuntimeKind.NODE,
        static_inspection=static_inspection,
    )
