"""OS packages installed in the traced image."""

import re
from pathlib import Path
from typing import Iterable, Optional

from fix_dockerfile.constants import DEFAULT_ENCODING
from fix_dockerfile.errors import EngineError
from fix_dockerfile.schema import Distro
from fix_dockerfile.utils import ui

_ANSI_RE = re.compile(r"\x1b\[[0-9;]*[A-Za-z]")
_APK_CONSTRAINT_RE = re.compile(r"[<>=~]")

LIST_COMMANDS = {
    Distro.DEBIAN: "apt list --manual-installed 2>/dev/null",
    Distro.ALPINE: "cat /etc/apk/world",
}

# installed by the instrumentation step, never by the user
TRACER_PACKAGES = ("strace",)


def parse_package_listing(output: str) -> list[str]:
    """
    Package names from ``apt list`` or ``/etc/apk/world`` output.

    ``curl/stable,now 7.88.1-10 amd64 [installed]`` becomes ``curl``;
    apk version constraints (``curl>=8``) are dropped too.
    """
    packages: list[str] = []
    for line in output.splitlines():
        line = _ANSI_RE.sub("", line).strip()
        if not line or line.startswith("Listing...") or line.startswith("WARNING"):
            continue
        name = line.split()[0].split("/")[0]
        name = _APK_CONSTRAINT_RE.split(name, maxsplit=1)[0]
        if name and name not in packages:
            packages.append(name)
    return packages


def subtract(packages: Iterable[str], baseline: Iterable[str]) -> list[str]:
    """Order-preserving ``packages - baseline``."""
    known = set(baseline)
    return [p for p in packages if p not in known]


class PackageExtractor:
    """
    Queries the package manager inside an image.

    ``extract_packages`` reports what the user's build added on top of its base
    image. Base image listings are cached in ``cache_dir`` under the language
    profile's package list name, so repeated cycles query the base only once.
    """

    def __init__(self, engine, cache_dir: Optional[Path] = None):
        self.engine = engine
        self.cache_dir = cache_dir

    def list_installed(self, image: str, distro: Distro) -> Optional[list[str]]:
        """Installed packages of an image; None when the query fails."""
        command = LIST_COMMANDS[distro]
        try:
            result = self.engine.run_once(image, command)
        except EngineError as e:
            ui.warning(f"Package query failed in {image}, no package data: {e}")
            return None
        if not result.success:
            ui.warning(
                f"Package query '{command}' exited with {result.exit_code} in {image}, no package data"
            )
            return None
        return parse_package_listing(result.stdout)

    def _cache_path(self, list_name: Optional[str]) -> Optional[Path]:
        if self.cache_dir is None or not list_name:
            return None
        return self.cache_dir / list_name

    def baseline(
        self, base_image: str, distro: Distro, list_name: Optional[str] = None
    ) -> Optional[list[str]]:
        """Packages of the base image, read from the cache file when it matches."""
        header = f"# {base_image}"
        path = self._cache_path(list_name)
        if path is not None and path.exists():
            lines = path.read_text(encoding=DEFAULT_ENCODING).splitlines()
            if lines and lines[0] == header:
                ui.debug(f"Using cached package list {path}")
                return [line for line in lines[1:] if line]

        packages = self.list_installed(base_image, distro)
        if path is not None and packages:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text("\n".join([header, *packages]) + "\n", encoding=DEFAULT_ENCODING)
        return packages

    def extract_packages(
        self,
        image: str,
        distro: Distro,
        base_image: Optional[str] = None,
        list_name: Optional[str] = None,
    ) -> Optional[list[str]]:
        """
        Packages the build installed on top of ``base_image``, None when unknown.

        Args:
            image: The traced image
            distro: Decides the package manager queried
            base_image: Image of the first FROM; its packages are not reported
            list_name: Cache file name for the base listing
        """
        installed = self.list_installed(image, distro)
        if installed is None:
            return None

        baseline: list[str] = list(TRACER_PACKAGES)
        if base_image:
            base_packages = self.baseline(base_image, distro, list_name)
            if base_packages is None:
                # unknown base listing, so the additions are unknown too
                return None
            baseline += base_packages

        packages = subtract(installed, baseline)
        ui.debug(f"Packages added by the build in {image}: {packages}")
        return packages
