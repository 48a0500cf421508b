"""Python runtime profile."""

import re
from pathlib import Path

from fix_dockerfile.constants import DEFAULT_ENCODING
from fix_dockerfile.features.languages.base import LanguageProfile
from fix_dockerfile.schema import Distro, RuntimeKind
from fix_dockerfile.utils import ui

LOCAL_SITE_PACKAGES = "local-site-packages"
REQUIREMENTS_NAME = "requirements.txt"
PIPFILE_NAME = "Pipfile"
DEFAULT_PYTHON_VERSION = "3.8"
PIPENV_EXPORT = f"pip install pipenv && pipenv requirements > {REQUIREMENTS_NAME}"

BUILD_PACKAGES = {
    Distro.DEBIAN: ["python3-dev", "build-essential", "pkg-config", "cmake"],
    Distro.ALPINE: ["python3-dev", "build-base", "pkgconf", "cmake"],
}

# distributions that commonly compile a C extension when no wheel matches
NATIVE_PACKAGES = {
    "psycopg2",
    "mysqlclient",
    "lxml",
    "pycairo",
    "pyaudio",
    "uwsgi",
    "python-ldap",
    "pygraphviz",
    "dlib",
    "gevent",
}

_PYTHON_VERSION_RE = re.compile(r'python_version\s*=\s*"(.*?)"')
_REQUIREMENT_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")
_PIPFILE_ENTRY_RE = re.compile(r"^\s*\"?([A-Za-z0-9][A-Za-z0-9._-]*)\"?\s*=")


def _normalize(name: str) -> str:
    return re.sub(r"[-_.]+", "-", name).lower()


def requirement_names(text: str) -> list[str]:
    names = []
    for line in text.splitlines():
        line = line.split("#", 1)[0]
        if line.strip().startswith("-"):
            continue
        match = _REQUIREMENT_NAME_RE.match(line)
        if match:
            names.append(_normalize(match.group(1)))
    return names


def pipfile_packages(text: str) -> list[str]:
    """Names declared in the [packages] and [dev-packages] tables."""
    names = []
    in_packages = False
    for line in text.splitlines():
        stripped = line.strip()
        if stripped.startswith("["):
            in_packages = stripped in ("[packages]", "[dev-packages]")
            continue
        if in_packages:
            match = _PIPFILE_ENTRY_RE.match(line)
            if match:
                names.append(_normalize(match.group(1)))
    return names


def pipfile_python_version(text: str) -> str:
    match = _PYTHON_VERSION_RE.search(text)
    return match.group(1) if match else DEFAULT_PYTHON_VERSION


def static_inspection(profile: LanguageProfile, source_tree: Path) -> None:
    requirements = source_tree / REQUIREMENTS_NAME
    pipfile = source_tree / PIPFILE_NAME

    declared: list[str] = []
    if requirements.exists():
        declared = requirement_names(requirements.read_text(encoding=DEFAULT_ENCODING))
    elif pipfile.exists():
        content = pipfile.read_text(encoding=DEFAULT_ENCODING)
        profile.install_commands.insert(0, PIPENV_EXPORT)
        profile.images[0] = f"python:{pipfile_python_version(content)}-slim"
        declared = pipfile_packages(content)
        ui.debug(f"Pipfile found, pinned {profile.images[0]}")
    else:
        ui.debug("No Python manifest found")
        return

    native = sorted(set(declared) & NATIVE_PACKAGES)
    if native:
        ui.debug(f"Native extension packages declared: {native}")
        profile.native_build = True


def python_profile() -> LanguageProfile:
    return LanguageProfile(
        name="python",
        images=["python:3.11-slim", "gcr.io/distroless/python3"],
        install_commands=[
            "pip3 install --upgrade pip",
            f"pip install -r ./{REQUIREMENTS_NAME} --target {LOCAL_SITE_PACKAGES}",
        ],
        env_vars=[f"PYTHONPATH=./{LOCAL_SITE_PACKAGES}"],
        runtimes=["python", "python3"],
        packages_list="pythonpackages.txt",
        ignored_paths=["__pycache__"],
        build_packages=BUILD_PACKAGES,
        runtime_kind=RuntimeKind.PYTHON,
        static_inspection=static_inspection,
    )
