"""Exception hierarchy for fix-dockerfile."""


class FixDockerfileError(Exception):
    """Base class for all fix-dockerfile errors."""

    pass


class EngineError(FixDockerfileError):
    """Raised when the container engine rejects an operation."""

    pass


class ToolingUnavailableError(EngineError):
    """Raised when the container engine (daemon) cannot be reached."""

    pass


class BuildFailedError(EngineError):
    """Raised when the instrumented image fails to build."""

    def __init__(self, message: str, build_log: str = ""):
        super().__init__(message)
        self.build_log = build_log


class TraceError(FixDockerfileError):
    """Raised when a trace cannot be recorded for reasons other than build/tooling."""

    pass


class PipelineStoppedError(FixDockerfileError):
    """Raised when a cycle is requested while the pipeline is stopped."""

    pass
