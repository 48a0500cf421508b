"""Container engine module - thin wrapper over the Docker SDK."""

import io
import shlex
import tarfile
from pathlib import Path
from typing import Optional

import docker
from docker.errors import APIError, BuildError, DockerException, ImageNotFound, NotFound

from fix_dockerfile.constants import DEFAULT_ENCODING, DEFAULT_TIMEOUT
from fix_dockerfile.errors import BuildFailedError, EngineError, ToolingUnavailableError
from fix_dockerfile.schema import CommandResult
from fix_dockerfile.utils import ui

BUILD_LOG_TAIL = 20


def _build_log_text(build_log) -> str:
    lines = []
    for chunk in build_log or []:
        if not isinstance(chunk, dict):
            continue
        text = chunk.get("stream") or chunk.get("error") or ""
        if text.strip():
            lines.append(text.rstrip("\n"))
    return "\n".join(lines[-BUILD_LOG_TAIL:])


def _decode(data: Optional[bytes]) -> str:
    return data.decode(DEFAULT_ENCODING, errors="replace") if data else ""


class ContainerEngine:
    """
    Build/run/exec/inspect/remove primitives over a Docker daemon.

    Knows nothing about Dockerfiles or traces. Containers and images are
    addressed by id or name so callers never hold SDK objects.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: int = DEFAULT_TIMEOUT,
        client: Optional[docker.DockerClient] = None,
    ):
        """
        Args:
            base_url: Daemon URL. ``None`` uses DOCKER_HOST and friends
            timeout: API timeout in seconds
            client: Pre-built client, mostly for tests
        """
        self.base_url = base_url
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> docker.DockerClient:
        """Connect lazily; an unreachable daemon is a tooling error."""
        if self._client is None:
            try:
                if self.base_url:
                    client = docker.DockerClient(base_url=self.base_url, timeout=self.timeout)
                else:
                    client = docker.from_env(timeout=self.timeout)
                client.ping()
            except DockerException as e:
                raise ToolingUnavailableError(
                    f"Docker daemon is not reachable: {e}"
                ) from e
            self._client = client
            ui.debug(f"Connected to Docker daemon (timeout={self.timeout}s)")
        return self._client

    # ------------------------------------------------------------------
    # Images
    # ------------------------------------------------------------------

    def build_image(self, context: Path, dockerfile: str, tag: str) -> str:
        """
        Build an image and return its id.

        Args:
            context: Build context directory
            dockerfile: Dockerfile path relative to the context
            tag: Image tag

        Raises:
            BuildFailedError: If the daemon rejects the build
        """
        ui.debug(f"Building image {tag} from {context / dockerfile}")
        try:
            image, _ = self.client.images.build(
                path=str(context),
                dockerfile=dockerfile,
                tag=tag,
                rm=True,
                forcerm=True,
            )
        except BuildError as e:
            raise BuildFailedError(
                f"Image build failed: {e.msg}", build_log=_build_log_text(e.build_log)
            ) from e
        except APIError as e:
            raise BuildFailedError(f"Image build failed: {e.explanation or e}") from e
        return image.id

    def remove_image(self, image: str) -> None:
        try:
            self.client.images.remove(image, force=True)
            ui.debug(f"Removed image {image}")
        except (ImageNotFound, NotFound):
            ui.debug(f"Image {image} already removed")
        except APIError as e:
            ui.warning(f"Failed to remove image {image}: {e}")

    # ------------------------------------------------------------------
    # Containers
    # ------------------------------------------------------------------

    def run(
        self,
        image: str,
        command: Optional[list[str]] = None,
        entrypoint: Optional[list[str]] = None,
        cap_add: Optional[list[str]] = None,
        security_opt: Optional[list[str]] = None,
    ) -> str:
        """Start a detached container and return its id."""
        try:
            container = self.client.containers.run(
                image,
                command=command,
                entrypoint=entrypoint,
                cap_add=cap_add,
                security_opt=security_opt,
                detach=True,
            )
        except (ImageNotFound, APIError) as e:
            raise EngineError(f"Failed to start container from {image}: {e}") from e
        ui.debug(f"Started container {container.id[:12]} from {image}")
        return container.id

    def run_once(self, image: str, shell_command: str) -> CommandResult:
        """Run a shell command in a throwaway container and collect its output."""
        container = None
        try:
            container = self.client.containers.run(
                image,
                command=[shell_command],
                entrypoint=["/bin/sh", "-c"],
                detach=True,
            )
            status = container.wait(timeout=self.timeout)
            exit_code = int(status.get("StatusCode", 1))
            stdout = _decode(container.logs(stdout=True, stderr=False))
            stderr = _decode(container.logs(stdout=False, stderr=True))
        except (ImageNotFound, APIError) as e:
            raise EngineError(f"Failed to run '{shell_command}' in {image}: {e}") from e
        finally:
            if container is not None:
                self.remove_container(container.id)

        return CommandResult(
            exit_code=exit_code,
            stdout=stdout,
            stderr=stderr,
            success=(exit_code == 0),
            command=shell_command,
        )

    def exec(self, container: str, command: list[str]) -> CommandResult:
        """Execute a command inside a running container."""
        cmd_str = shlex.join(command)
        try:
            handle = self.client.containers.get(container)
            exit_code, (stdout, stderr) = handle.exec_run(command, demux=True)
        except (NotFound, APIError) as e:
            raise EngineError(f"Failed to exec '{cmd_str}' in {container}: {e}") from e

        exit_code = exit_code if exit_code is not None else 0
        return CommandResult(
            exit_code=exit_code,
            stdout=_decode(stdout),
            stderr=_decode(stderr),
            success=(exit_code == 0),
            command=cmd_str,
        )

    def get_container(self, name_or_id: str) -> Optional[str]:
        """Id of a running container, or None when it does not exist."""
        try:
            container = self.client.containers.get(name_or_id)
        except NotFound:
            return None
        container.reload()
        if container.status != "running":
            return None
        return container.id

    def container_image(self, container: str) -> Optional[str]:
        """Image reference (tag when available) a container was started from."""
        attrs = self.client.containers.get(container).attrs
        return attrs.get("Config", {}).get("Image")

    def inspect_ports(self, container: str) -> list[int]:
        """Ports a container exposes or publishes, as reported by inspect."""
        try:
            attrs = self.client.containers.get(container).attrs
        except (NotFound, APIError) as e:
            ui.warning(f"Failed to inspect ports of {container}: {e}")
            return []

        keys = list((attrs.get("NetworkSettings", {}).get("Ports") or {}).keys())
        keys += list((attrs.get("Config", {}).get("ExposedPorts") or {}).keys())

        ports: list[int] = []
        for key in keys:
            port = key.split("/", 1)[0]
            if port.isdigit() and int(port) not in ports:
                ports.append(int(port))
        return ports

    def stop(self, container: str, timeout: int = 1) -> None:
        try:
            self.client.containers.get(container).stop(timeout=timeout)
        except NotFound:
            ui.debug(f"Container {container} not found during stop")
        except APIError as e:
            ui.warning(f"Failed to stop container {container}: {e}")

    def remove_container(self, container: str) -> None:
        try:
            self.client.containers.get(container).remove(force=True)
            ui.debug(f"Removed container {container[:12]}")
        except NotFound:
            ui.debug(f"Container {container} already removed")
        except APIError as e:
            ui.warning(f"Failed to remove container {container}: {e}")

    def read_file(self, container: str, path: str) -> str:
        """
        Copy one file out of a (possibly stopped) container.

        Raises:
            EngineError: If the file does not exist or cannot be copied
        """
        try:
            bits, _ = self.client.containers.get(container).get_archive(path)
        except (NotFound, APIError) as e:
            raise EngineError(f"Failed to copy {path} from {container}: {e}") from e

        buffer = io.BytesIO(b"".join(bits))
        with tarfile.open(fileobj=buffer) as archive:
            for member in archive.getmembers():
                if member.isfile():
                    extracted = archive.extractfile(member)
                    return _decode(extracted.read())
        raise EngineError(f"{path} in {container} is not a regular file")
