"""Shared fixtures: an in-memory container engine and sample source trees."""

from pathlib import Path
from typing import Optional

import pytest

from fix_dockerfile.errors import BuildFailedError, EngineError
from fix_dockerfile.schema import CommandResult

BIND_5000 = (
    '1 bind(3, {sa_family=AF_INET, sin_port=htons(5000), '
    'sin_addr=inet_addr("0.0.0.0")}, 16) = 0 <0.000021>\n'
)

PYTHON_DOCKERFILE = (
    "FROM python:3.11-slim\n"
    "WORKDIR /app\n"
    "COPY . .\n"
    'CMD ["python", "app.py"]\n'
)


class FakeEngine:
    """Implements the ContainerEngine methods the driver and the pipeline call."""

    def __init__(
        self,
        syscall_log: str = "",
        listings: Optional[dict[str, str]] = None,
        default_listing: Optional[str] = None,
        running: Optional[dict[str, str]] = None,
        ports: Optional[list[int]] = None,
        live_image: str = "web:latest",
    ):
        self.syscall_log = syscall_log
        self.listings = listings or {}
        self.default_listing = default_listing
        self.running = running or {}
        self.ports = ports or []
        self.live_image = live_image

        self.fail_build = False
        self.fail_run = False
        self.fail_log = False

        self.built: list[str] = []
        self.built_dockerfile: Optional[str] = None
        self.run_kwargs: Optional[dict] = None
        self.queries: list[tuple[str, str]] = []
        self.exec_commands: list[list[str]] = []
        self.stopped: list[str] = []
        self.removed_images: list[str] = []
        self.removed_containers: list[str] = []

    def build_image(self, context: Path, dockerfile: str, tag: str) -> str:
        self.built.append(tag)
        self.built_dockerfile = Path(dockerfile).read_text(encoding="utf-8")
        if self.fail_build:
            raise BuildFailedError("Image build failed: returned a non-zero code", "E: boom")
        return f"sha256:{tag}"

    def remove_image(self, image: str) -> None:
        self.removed_images.append(image)

    def run(self, image, command=None, entrypoint=None, cap_add=None, security_opt=None) -> str:
        if self.fail_run:
            raise EngineError(f"Failed to start container from {image}")
        self.run_kwargs = {
            "image": image,
            "command": command,
            "entrypoint": entrypoint,
            "cap_add": cap_add,
            "security_opt": security_opt,
        }
        return f"container-{len(self.built)}"

    def run_once(self, image: str, shell_command: str) -> CommandResult:
        self.queries.append((image, shell_command))
        listing = self.listings.get(image, self.default_listing)
        if listing is None:
            return CommandResult(
                exit_code=127, stderr="not found", success=False, command=shell_command
            )
        return CommandResult(exit_code=0, stdout=listing, success=True, command=shell_command)

    def exec(self, container: str, command: list[str]) -> CommandResult:
        self.exec_commands.append(command)
        return CommandResult(exit_code=124, success=False, command=" ".join(command))

    def get_container(self, name_or_id: str) -> Optional[str]:
        return self.running.get(name_or_id)

    def container_image(self, container: str) -> Optional[str]:
        return self.live_image

    def inspect_ports(self, container: str) -> list[int]:
        return list(self.ports)

    def stop(self, container: str, timeout: int = 1) -> None:
        self.stopped.append(container)

    def remove_container(self, container: str) -> None:
        self.removed_containers.append(container)

    def read_file(self, container: str, path: str) -> str:
        if self.fail_log:
            raise EngineError(f"Failed to copy {path} from {container}")
        return self.syscall_log


@pytest.fixture
def make_engine():
    return FakeEngine


@pytest.fixture
def python_tree(tmp_path: Path) -> Path:
    """A small Flask-style project with a Dockerfile."""
    tree = tmp_path / "app"
    tree.mkdir()
    (tree / "Dockerfile").write_text(PYTHON_DOCKERFILE, encoding="utf-8")
    (tree / "requirements.txt").write_text("flask\n", encoding="utf-8")
    (tree / "app.py").write_text("print('hi')\n", encoding="utf-8")
    return tree
