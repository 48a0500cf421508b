"""
Trace driver: build an instrumented image, run it under strace, hand back the log.

Everything the driver creates (instrumented build file, generated
.dockerignore, container, image, syscall log) is released when the ``trace``
block exits, whatever the exit path.
"""

import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterator, Optional, Sequence

from fix_dockerfile.constants import (
    CONTAINER_SYSCALL_LOG,
    DEFAULT_ENCODING,
    DEFAULT_TRACE_DURATION,
    DOCKERFILE_NAME,
    DOCKERIGNORE_NAME,
    INSTRUMENTED_DOCKERFILE_NAME,
    SYSCALL_LOG_NAME,
    TRACE_IMAGE_PREFIX,
)
from fix_dockerfile.dockerfile import Dockerfile, detect_distro, parse_dockerfile
from fix_dockerfile.errors import EngineError, TraceError
from fix_dockerfile.features.ports import records_from_port_bindings
from fix_dockerfile.schema import Distro, SyscallRecord
from fix_dockerfile.tracing.instrument import (
    attach_command,
    container_command,
    instrument_dockerfile,
    traced_entrypoint,
)
from fix_dockerfile.tracing.syscalls import read_syscall_log
from fix_dockerfile.utils import ui
from fix_dockerfile.utils.io import load_file, remove_quietly

TIMEOUT_EXIT_CODE = 124  # timeout(1) when the traced window elapses


@dataclass
class TraceSession:
    """What one trace produced. Valid only inside the ``trace`` block."""

    log_path: Path
    image: Optional[str]
    distro: Distro = Distro.DEBIAN
    base_image: Optional[str] = None
    port_hints: list[int] = field(default_factory=list)
    container: Optional[str] = None

    def records(self) -> Iterator[SyscallRecord]:
        """Synthetic binds for known ports first, then the log in file order."""
        yield from records_from_port_bindings(self.port_hints)
        yield from read_syscall_log(self.log_path)


@dataclass
class _Resources:
    files: list[Path] = field(default_factory=list)
    container: Optional[str] = None
    image: Optional[str] = None


class TraceDriver:
    """
    Runs one trace at a time.

    Starting a new trace while an old session still holds resources tears the
    old one down first (last writer wins, no backlog).
    """

    def __init__(
        self,
        engine,
        scratch_dir: Path,
        duration: int = DEFAULT_TRACE_DURATION,
        keep_debug_dump: bool = False,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Args:
            engine: ContainerEngine (or anything with the same methods)
            scratch_dir: Directory for the log and the instrumented build file
            duration: Default trace window in seconds
            keep_debug_dump: Keep the syscall log after the session ends
            sleep: Waits out the trace window; injectable for tests
        """
        self.engine = engine
        self.scratch_dir = Path(scratch_dir)
        self.duration = duration
        self.keep_debug_dump = keep_debug_dump
        self._sleep = sleep
        self._lock = threading.Lock()
        self._active: Optional[_Resources] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @contextmanager
    def trace(
        self,
        source_tree: Path,
        start_command: Optional[str] = None,
        duration: Optional[int] = None,
        dockerfile: str = DOCKERFILE_NAME,
        container: Optional[str] = None,
        ignored_paths: Sequence[str] = (),
    ) -> Iterator[TraceSession]:
        """
        Trace the application for ``duration`` seconds.

        Args:
            source_tree: Build context holding the Dockerfile
            start_command: Command to trace instead of ENTRYPOINT/CMD
            duration: Trace window, defaults to the driver's
            dockerfile: Build file name relative to the source tree
            container: Name or id of a running container to attach to instead
            ignored_paths: Entries for a .dockerignore created when none exists

        Yields:
            TraceSession whose log stays on disk until the block exits

        Raises:
            ToolingUnavailableError: Daemon unreachable
            BuildFailedError: Instrumented image did not build
            TraceError: Container could not be started or found
        """
        source_tree = Path(source_tree).resolve()
        duration = duration or self.duration

        self.teardown()
        resources = _Resources()
        with self._lock:
            self._active = resources

        try:
            if container:
                session = self._trace_live(source_tree, dockerfile, container, duration, resources)
            else:
                session = self._trace_build(
                    source_tree, dockerfile, start_command, duration, ignored_paths, resources
                )
            yield session
        finally:
            self._release(resources)
            with self._lock:
                if self._active is resources:
                    self._active = None

    def teardown(self) -> None:
        """Release whatever an in-flight or stale session still holds."""
        with self._lock:
            resources, self._active = self._active, None
        if resources is not None:
            ui.info("Tearing down previous trace session")
            self._release(resources)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _log_path(self) -> Path:
        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        return self.scratch_dir / SYSCALL_LOG_NAME

    def _load_dockerfile(self, path: Path) -> Dockerfile:
        if not path.exists():
            raise TraceError(f"Dockerfile not found: {path}")
        return parse_dockerfile(load_file(path))

    def _write_ignore_file(self, source_tree: Path, ignored_paths: Sequence[str], resources: _Resources) -> None:
        path = source_tree / DOCKERIGNORE_NAME
        if path.exists() or not ignored_paths:
            return
        path.write_text("\n".join(ignored_paths) + "\n", encoding=DEFAULT_ENCODING)
        resources.files.append(path)
        ui.debug(f"Created temporary {path}")

    def _collect_log(self, container: str, log_path: Path, resources: _Resources) -> None:
        resources.files.append(log_path)
        try:
            content = self.engine.read_file(container, CONTAINER_SYSCALL_LOG)
        except EngineError as e:
            ui.warning(f"Syscall log unavailable, no trace data: {e}")
            content = ""
        log_path.write_text(content, encoding=DEFAULT_ENCODING)

    def _trace_build(
        self,
        source_tree: Path,
        dockerfile_name: str,
        start_command: Optional[str],
        duration: int,
        ignored_paths: Sequence[str],
        resources: _Resources,
    ) -> TraceSession:
        dockerfile = self._load_dockerfile(source_tree / dockerfile_name)
        distro = detect_distro(dockerfile)
        base_image = dockerfile.froms[0].image_reference() if dockerfile.froms else None
        command = container_command(dockerfile, start_command)

        self.scratch_dir.mkdir(parents=True, exist_ok=True)
        instrumented = self.scratch_dir / INSTRUMENTED_DOCKERFILE_NAME
        instrumented.write_text(
            instrument_dockerfile(dockerfile.text, distro), encoding=DEFAULT_ENCODING
        )
        resources.files.append(instrumented)
        self._write_ignore_file(source_tree, ignored_paths, resources)

        tag = f"{TRACE_IMAGE_PREFIX}-{uuid.uuid4().hex}"
        # registered before building so a partial image is removed too
        resources.image = tag
        ui.step(f"Building instrumented image {tag}")
        self.engine.build_image(source_tree, str(instrumented), tag)

        ui.step(f"Tracing '{' '.join(command)}' for {duration}s")
        try:
            resources.container = self.engine.run(
                tag,
                command=command,
                entrypoint=traced_entrypoint(),
                cap_add=["SYS_PTRACE"],
                security_opt=["seccomp=unconfined"],
            )
        except EngineError as e:
            raise TraceError(f"Traced container did not start: {e}") from e

        # the window elapsing is the normal end of a trace
        self._sleep(duration)
        self.engine.stop(resources.container)

        log_path = self._log_path()
        self._collect_log(resources.container, log_path, resources)
        return TraceSession(
            log_path=log_path,
            image=tag,
            distro=distro,
            base_image=base_image,
            container=resources.container,
        )

    def _trace_live(
        self,
        source_tree: Path,
        dockerfile_name: str,
        container: str,
        duration: int,
        resources: _Resources,
    ) -> TraceSession:
        container_id = self.engine.get_container(container)
        if container_id is None:
            raise TraceError(f"Container {container} is not running")

        dockerfile_path = source_tree / dockerfile_name
        distro = Distro.DEBIAN
        base_image = None
        if dockerfile_path.exists():
            dockerfile = self._load_dockerfile(dockerfile_path)
            distro = detect_distro(dockerfile)
            base_image = dockerfile.froms[0].image_reference() if dockerfile.froms else None

        port_hints = self.engine.inspect_ports(container_id)
        ui.step(f"Attaching to container {container} for {duration}s")
        result = self.engine.exec(container_id, attach_command(duration))
        if not result.success and result.exit_code != TIMEOUT_EXIT_CODE:
            ui.warning(
                f"strace exited with {result.exit_code} in {container}: {result.output.strip()}"
            )

        log_path = self._log_path()
        self._collect_log(container_id, log_path, resources)
        return TraceSession(
            log_path=log_path,
            image=self.engine.container_image(container_id),
            distro=distro,
            base_image=base_image,
            port_hints=port_hints,
            container=container_id,
        )

    def _release(self, resources: _Resources) -> None:
        if resources.container:
            self.engine.remove_container(resources.container)
            resources.container = None
        if resources.image:
            self.engine.remove_image(resources.image)
            resources.image = None
        for path in resources.files:
            if self.keep_debug_dump and path.name == SYSCALL_LOG_NAME:
                ui.debug(f"Keeping syscall log {path}")
                continue
            remove_quietly(path)
        resources.files.clear()
