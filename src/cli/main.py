"""Main CLI application for fix-dockerfile."""

from contextlib import contextmanager
from pathlib import Path
from typing import List, Optional

import typer

from cli.commands import config_app
from fix_dockerfile.config import config_service
from fix_dockerfile.constants import DOCKERFILE_NAME, PROJECT_NAME, ExitCode
from fix_dockerfile.engine import ContainerEngine
from fix_dockerfile.errors import (
    BuildFailedError,
    FixDockerfileError,
    ToolingUnavailableError,
)
from fix_dockerfile.pipeline import ReconciliationPipeline
from fix_dockerfile.schema import RepairCode, RuntimeKind
from fix_dockerfile.utils.io import dump_models, load_file, write_file
from fix_dockerfile.utils.ui import (
    console,
    debug,
    error,
    info,
    print_comparison,
    print_diagnostics,
    print_dockerfile,
    step,
    success,
    warning,
)

app = typer.Typer(
    name=PROJECT_NAME,
    help="Trace a containerised application and repair its Dockerfile",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# -------------------------------
# Sub-Apps
# -------------------------------

app.add_typer(config_app, name="config")


# -------------------------------
# Shared helpers
# -------------------------------


@contextmanager
def _exit_on_error():
    """Map pipeline errors to exit codes."""
    try:
        yield
    except ToolingUnavailableError as e:
        error(f"Container engine unavailable: {e}")
        raise typer.Exit(ExitCode.ERROR_TOOLING_UNAVAILABLE)
    except BuildFailedError as e:
        error(f"Instrumented build failed: {e}")
        if e.build_log:
            debug(e.build_log)
        raise typer.Exit(ExitCode.ERROR_DOCKER_BUILD)
    except FixDockerfileError as e:
        error(str(e))
        raise typer.Exit(ExitCode.ERROR_GENERAL)
    except OSError as e:
        error(f"File access failed: {e}")
        raise typer.Exit(ExitCode.ERROR_GENERAL)


def _build_pipeline() -> ReconciliationPipeline:
    config = config_service.config
    engine = ContainerEngine(base_url=config.DOCKER_BASE_URL, timeout=config.TIMEOUT)
    return ReconciliationPipeline(
        engine,
        scratch_dir=config.dir_configs.scratch_dir,
        duration=config.TRACE_DURATION,
        keep_debug_dump=config.KEEP_DEBUG_DUMP,
        cache_dir=config.dir_configs.cache_dir,
    )


def _require_file(dockerfile: Path) -> Path:
    if not dockerfile.is_file():
        error(f"Dockerfile not found: {dockerfile}")
        raise typer.Exit(ExitCode.ERROR_GENERAL)
    return dockerfile.resolve()


def _trace(
    pipeline: ReconciliationPipeline,
    dockerfile: Path,
    cmd: Optional[str],
    container: Optional[str],
    duration: Optional[int],
) -> None:
    step(f"Tracing {container or dockerfile.parent}")
    result = pipeline.run_cycle(
        dockerfile.parent,
        dockerfile=dockerfile.name,
        start_command=cmd,
        container=container,
        duration=duration,
    )
    packages = "unknown" if result.features.packages is None else len(result.features.packages)
    info(
        f"Trace finished: {len(result.features.ports)} port(s), {packages} package(s), "
        f"language {result.language}"
    )


# -------------------------------
# Command: check
# -------------------------------
@app.command(name="check", help="Report repairable problems of a Dockerfile.")
def check_command(
    dockerfile: Path = typer.Argument(Path(DOCKERFILE_NAME), help="Dockerfile to check"),
    trace: bool = typer.Option(False, "--trace", help="Trace the application first"),
    cmd: Optional[str] = typer.Option(
        None, "--cmd", "-c", help="Start command to trace instead of ENTRYPOINT/CMD"
    ),
    container: Optional[str] = typer.Option(
        None, "--container", help="Attach to this running container instead of building"
    ),
    duration: Optional[int] = typer.Option(
        None, "--duration", "-d", min=1, help="Trace window in seconds"
    ),
    as_json: bool = typer.Option(False, "--json", help="Print diagnostics as JSON"),
    dev: bool = typer.Option(False, "--dev", help="Enable dev mode (.env)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
):
    """Report repairable problems, optionally reconciled against a trace."""
    config_service.load_config(dev_mode=dev, enabled_console=verbose, TRACE_DURATION=duration)
    dockerfile = _require_file(dockerfile)

    with _exit_on_error():
        pipeline = _build_pipeline()
        if trace or container:
            _trace(pipeline, dockerfile, cmd, container, duration)
        diagnostics = pipeline.diagnose(load_file(dockerfile))

    if as_json:
        typer.echo(dump_models(diagnostics))
    else:
        print_diagnostics(diagnostics, title=str(dockerfile))


# -------------------------------
# Command: repair
# -------------------------------
@app.command(name="repair", help="Repair a Dockerfile until no repairable problem is left.")
def repair_command(
    dockerfile: Path = typer.Argument(Path(DOCKERFILE_NAME), help="Dockerfile to repair"),
    trace: bool = typer.Option(False, "--trace", help="Trace the application first"),
    cmd: Optional[str] = typer.Option(
        None, "--cmd", "-c", help="Start command to trace instead of ENTRYPOINT/CMD"
    ),
    container: Optional[str] = typer.Option(
        None, "--container", help="Attach to this running container instead of building"
    ),
    duration: Optional[int] = typer.Option(
        None, "--duration", "-d", min=1, help="Trace window in seconds"
    ),
    codes: Optional[List[str]] = typer.Option(
        None, "--code", help="Only repair these codes, e.g. R:NOCACHE or NOCACHE"
    ),
    runtime: Optional[RuntimeKind] = typer.Option(
        None, "--runtime", help="Runtime used for user and image repairs (default: from FROM)"
    ),
    write: bool = typer.Option(False, "--write", "-w", help="Overwrite the Dockerfile"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
    dev: bool = typer.Option(False, "--dev", help="Enable dev mode (.env)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
):
    """
    Apply repairs one at a time, recomputing diagnostics after each edit.

    Examples:
        fix-dockerfile repair
        fix-dockerfile repair --code NOCACHE --code APTLIST
        fix-dockerfile repair --trace --cmd "python app.py" --write
    """
    config_service.load_config(dev_mode=dev, enabled_console=verbose, TRACE_DURATION=duration)
    dockerfile = _require_file(dockerfile)

    selected = None
    if codes:
        try:
            selected = [
                RepairCode(code) if code.startswith("R:") else RepairCode.from_suffix(code.upper())
                for code in codes
            ]
        except ValueError as e:
            error(f"Unknown repair code: {e}")
            raise typer.Exit(ExitCode.ERROR_GENERAL)

    with _exit_on_error():
        pipeline = _build_pipeline()
        if trace or container:
            _trace(pipeline, dockerfile, cmd, container, duration)
        original = load_file(dockerfile)
        result = pipeline.repair_all(original, codes=selected, runtime_kind=runtime)

    if not result.changed:
        success("Nothing to repair")
        return

    print_comparison(original, result.text)
    for edit in result.edits:
        info(f"{edit.code}: {edit.title} (line {edit.range.start.line + 1})")

    if not write:
        info("Use --write to save the repaired Dockerfile")
        return
    if not yes and not typer.confirm(f"Overwrite {dockerfile}?"):
        warning("Cancelled")
        return
    with _exit_on_error():
        write_file(dockerfile, result.text, backup=True)
    success(f"Repaired {dockerfile}")


# -------------------------------
# Command: generate
# -------------------------------
@app.command(name="generate", help="Trace once and print the synthesized alternative Dockerfile.")
def generate_command(
    dockerfile: Path = typer.Argument(Path(DOCKERFILE_NAME), help="Dockerfile to trace"),
    cmd: Optional[str] = typer.Option(
        None, "--cmd", "-c", help="Start command to trace instead of ENTRYPOINT/CMD"
    ),
    container: Optional[str] = typer.Option(
        None, "--container", help="Attach to this running container instead of building"
    ),
    duration: Optional[int] = typer.Option(
        None, "--duration", "-d", min=1, help="Trace window in seconds"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Save the alternative to this file"
    ),
    dev: bool = typer.Option(False, "--dev", help="Enable dev mode (.env)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log to the console"),
):
    """The alternative is a comparison oracle, not a recommended file."""
    config_service.load_config(dev_mode=dev, enabled_console=verbose, TRACE_DURATION=duration)
    dockerfile = _require_file(dockerfile)

    with _exit_on_error():
        pipeline = _build_pipeline()
        _trace(pipeline, dockerfile, cmd, container, duration)
        alternative = pipeline.cache.snapshot()
        if output is not None:
            write_file(output, alternative.text)

    print_dockerfile(alternative.text, title="Synthesized Dockerfile")
    if output is not None:
        success(f"Alternative saved to {output}")


# -------------------------------
# Version and main
# -------------------------------
@app.command()
def version() -> None:
    """Show version information."""
    from fix_dockerfile import __name__, __version__

    console.print(f"{__name__} version {__version__}")


def main() -> None:
    """Entry point for the CLI."""
    try:
        app()
    except KeyboardInterrupt:
        console.print()
        warning("Interrupted by user")
        raise SystemExit(ExitCode.ERROR_USER_CANCEL)


if __name__ == "__main__":
    main()
