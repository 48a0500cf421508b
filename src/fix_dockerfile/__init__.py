"""Trace a containerised application and repair its Dockerfile."""

import fix_dockerfile.constants

__version__ = fix_dockerfile.constants.__version__

from fix_dockerfile.config import ConfigService, Configs, config_service

from .dockerfile import Dockerfile, parse_dockerfile
from .engine import ContainerEngine
from .errors import (
    BuildFailedError,
    EngineError,
    FixDockerfileError,
    PipelineStoppedError,
    ToolingUnavailableError,
    TraceError,
)
from .pipeline import AlternativeCache, CycleResult, ReconciliationPipeline, RepairResult
from .reconcile import reconcile
from .repairs import RepairSynthesizer
from .rules import check_repairable_problems
from .schema import RepairCode, RepairDiagnostic, RepairEdit, RuntimeKind
from .synthesizer import SynthesizedDockerfile, synthesize

__all__ = [
    "AlternativeCache",
    "BuildFailedError",
    "ConfigService",
    "Configs",
    "ContainerEngine",
    "CycleResult",
    "Dockerfile",
    "EngineError",
    "FixDockerfileError",
    "PipelineStoppedError",
    "ReconciliationPipeline",
    "RepairCode",
    "RepairDiagnostic",
    "RepairEdit",
    "RepairResult",
    "RepairSynthesizer",
    "RuntimeKind",
    "SynthesizedDockerfile",
    "ToolingUnavailableError",
    "TraceError",
    "check_repairable_problems",
    "config_service",
    "parse_dockerfile",
    "reconcile",
    "synthesize",
]
