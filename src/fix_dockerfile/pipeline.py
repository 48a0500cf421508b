"""
Trace-and-reconcile pipeline.

One cycle traces the application, extracts its features and synthesizes the
alternative Dockerfile. The alternative lives in a single-slot cache that
diagnosis and repair read as a snapshot until the next successful cycle.
"""

import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Iterable, Optional

from fix_dockerfile.constants import (
    ALTERNATIVE_DOCKERFILE_NAME,
    DEFAULT_TRACE_DURATION,
    DOCKERFILE_NAME,
)
from fix_dockerfile.dockerfile import parse_dockerfile
from fix_dockerfile.document import TextDocument
from fix_dockerfile.errors import (
    BuildFailedError,
    PipelineStoppedError,
    ToolingUnavailableError,
    TraceError,
)
from fix_dockerfile.features import (
    LanguageProfile,
    PackageExtractor,
    extract_ports,
    inspect_language,
)
from fix_dockerfile.reconcile import reconcile
from fix_dockerfile.repairs import RepairSynthesizer
from fix_dockerfile.rules import check_repairable_problems
from fix_dockerfile.schema import FeatureSet, RepairDiagnostic, RepairEdit, RuntimeKind
from fix_dockerfile.synthesizer import SynthesizedDockerfile, synthesize
from fix_dockerfile.tracing import TraceDriver
from fix_dockerfile.utils import ui
from fix_dockerfile.utils.io import load_file, write_file

MAX_REPAIR_ROUNDS = 100


class AlternativeCache:
    """Most recent synthesized alternative. Overwritten on success only."""

    def __init__(self):
        self._lock = threading.Lock()
        self._alternative: Optional[SynthesizedDockerfile] = None

    def store(self, alternative: SynthesizedDockerfile) -> None:
        with self._lock:
            self._alternative = alternative

    def snapshot(self) -> Optional[SynthesizedDockerfile]:
        with self._lock:
            return self._alternative

    def invalidate(self) -> None:
        with self._lock:
            self._alternative = None


@dataclass
class CycleResult:
    """Outcome of one successful trace cycle."""

    alternative: SynthesizedDockerfile
    features: FeatureSet
    language: str
    dump_path: Optional[Path] = None


@dataclass
class RepairResult:
    """Text after ``repair_all`` and the edits that produced it, in order."""

    text: str
    edits: list[RepairEdit] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return bool(self.edits)


class ReconciliationPipeline:
    """
    Orchestrates trace, extraction, synthesis, diagnosis and repair.

    Only one cycle runs at a time. ``stop`` tears down the trace in flight and
    refuses new cycles until ``toggle`` or ``restart``.
    """

    def __init__(
        self,
        engine,
        scratch_dir: Path,
        duration: int = DEFAULT_TRACE_DURATION,
        keep_debug_dump: bool = False,
        cache_dir: Optional[Path] = None,
        driver: Optional[TraceDriver] = None,
    ):
        self.scratch_dir = Path(scratch_dir)
        self.keep_debug_dump = keep_debug_dump
        self.driver = driver or TraceDriver(
            engine, self.scratch_dir, duration=duration, keep_debug_dump=keep_debug_dump
        )
        self.packages = PackageExtractor(engine, cache_dir=cache_dir)
        self.cache = AlternativeCache()

        self._cycle_lock = threading.Lock()
        self._state_lock = threading.Lock()
        self._stopped = False
        self._last_request: Optional[dict[str, Any]] = None

    @property
    def stopped(self) -> bool:
        with self._state_lock:
            return self._stopped

    # ------------------------------------------------------------------
    # Trace cycle
    # ------------------------------------------------------------------

    def run_cycle(
        self,
        source_tree: Path,
        dockerfile: str = DOCKERFILE_NAME,
        start_command: Optional[str] = None,
        container: Optional[str] = None,
        duration: Optional[int] = None,
    ) -> CycleResult:
        """
        Trace the application and cache the synthesized alternative.

        Raises:
            PipelineStoppedError: The pipeline was stopped
            ToolingUnavailableError: No container engine
            BuildFailedError: The instrumented image did not build
            TraceError: Nothing could be traced
        """
        if self.stopped:
            raise PipelineStoppedError("Pipeline is stopped, restart it to trace again")

        source_tree = Path(source_tree)
        self._last_request = {
            "source_tree": source_tree,
            "dockerfile": dockerfile,
            "start_command": start_command,
            "container": container,
            "duration": duration,
        }

        with self._cycle_lock:
            dockerfile_path = source_tree / dockerfile
            if not dockerfile_path.exists():
                raise TraceError(f"Dockerfile not found: {dockerfile_path}")
            original = parse_dockerfile(load_file(dockerfile_path))
            profile = inspect_language(source_tree, original, start_command)
            ui.info(f"Language profile: {profile.name}")

            try:
                features = self._collect_features(
                    source_tree, dockerfile, start_command, container, duration, profile
                )
            except (BuildFailedError, ToolingUnavailableError):
                # the previous trace no longer describes this Dockerfile
                self.cache.invalidate()
                raise

            ui.info(f"Observed ports: {features.ports or 'none'}")
            alternative = synthesize(original, features, profile)

            if self.stopped:
                raise PipelineStoppedError("Pipeline stopped during the cycle, result discarded")
            self.cache.store(alternative)

            dump_path = None
            if self.keep_debug_dump:
                self.scratch_dir.mkdir(parents=True, exist_ok=True)
                dump_path = self.scratch_dir / ALTERNATIVE_DOCKERFILE_NAME
                write_file(dump_path, alternative.text)
                ui.debug(f"Alternative Dockerfile written to {dump_path}")

            return CycleResult(
                alternative=alternative,
                features=features,
                language=profile.name,
                dump_path=dump_path,
            )

    def _collect_features(
        self,
        source_tree: Path,
        dockerfile: str,
        start_command: Optional[str],
        container: Optional[str],
        duration: Optional[int],
        profile: LanguageProfile,
    ) -> FeatureSet:
        with self.driver.trace(
            source_tree,
            start_command=start_command,
            duration=duration,
            dockerfile=dockerfile,
            container=container,
            ignored_paths=profile.ignored_paths,
        ) as session:
            ports = extract_ports(session.records())
            packages = None
            if session.image:
                packages = self.packages.extract_packages(
                    session.image, session.distro, session.base_image, profile.packages_list
                )
            else:
                ui.warning("Traced image unknown, no package data")
            return FeatureSet(
                ports=ports,
                packages=packages,
                distro=session.distro,
                base_image=session.base_image,
            )

    # ------------------------------------------------------------------
    # Diagnosis and repair
    # ------------------------------------------------------------------

    def diagnose(self, document_text: str) -> list[RepairDiagnostic]:
        """Trace reconciliation (when a trace result exists) plus the static rules."""
        dockerfile = parse_dockerfile(document_text)
        diagnostics: list[RepairDiagnostic] = []
        alternative = self.cache.snapshot()
        if alternative is not None:
            diagnostics += reconcile(dockerfile, alternative)
        diagnostics += check_repairable_problems(dockerfile)
        return diagnostics

    def repair(
        self,
        diagnostic: RepairDiagnostic,
        document_text: str,
        runtime_kind: Optional[RuntimeKind] = None,
    ) -> Optional[RepairEdit]:
        return RepairSynthesizer(self.cache.snapshot()).synthesize(
            diagnostic, document_text, runtime_kind
        )

    def repair_all(
        self,
        document_text: str,
        codes: Optional[Iterable[str]] = None,
        runtime_kind: Optional[RuntimeKind] = None,
    ) -> RepairResult:
        """
        Apply repairs one at a time until no diagnostic can be repaired.

        Diagnostics are recomputed after every edit, so each repair sees a
        fresh snapshot. ``codes`` restricts which diagnostics are repaired.
        """
        wanted = set(codes) if codes else None
        result = RepairResult(text=document_text)

        for _ in range(MAX_REPAIR_ROUNDS):
            applied = False
            for diagnostic in self.diagnose(result.text):
                if wanted is not None and diagnostic.code not in wanted:
                    continue
                edit = self.repair(diagnostic, result.text, runtime_kind)
                if edit is None:
                    continue
                repaired = TextDocument(result.text).apply(edit)
                if repaired == result.text:
                    continue
                ui.debug(f"Applied {edit.code}: {edit.title}")
                result.text = repaired
                result.edits.append(edit)
                applied = True
                break
            if not applied:
                return result

        ui.warning(f"Stopped repairing after {MAX_REPAIR_ROUNDS} edits")
        return result

    # ------------------------------------------------------------------
    # Lifecycle signals
    # ------------------------------------------------------------------

    def stop(self) -> None:
        """Tear down the trace in flight and refuse new cycles."""
        with self._state_lock:
            self._stopped = True
        self.driver.teardown()
        self.cache.invalidate()
        ui.info("Pipeline stopped")

    def toggle(self) -> bool:
        """Stop a running pipeline or re-enable a stopped one. Returns True when running."""
        if self.stopped:
            with self._state_lock:
                self._stopped = False
            ui.info("Pipeline enabled")
            return True
        self.stop()
        return False

    def restart(self, **overrides) -> Optional[CycleResult]:
        """Dispose the previous cycle, then run the last request again."""
        self.driver.teardown()
        self.cache.invalidate()
        with self._state_lock:
            self._stopped = False
        if self._last_request is None and "source_tree" not in overrides:
            ui.info("Nothing traced yet, pipeline enabled")
            return None
        request = {**(self._last_request or {}), **overrides}
        return self.run_cycle(**request)
