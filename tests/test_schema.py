"""Tests for data models, configuration and errors."""

import json

import pytest
from pydantic import ValidationError

from fix_dockerfile.config import Configs
from fix_dockerfile.errors import (
    BuildFailedError,
    EngineError,
    FixDockerfileError,
    ToolingUnavailableError,
)
from fix_dockerfile.schema import (
    CommandResult,
    DiagnosticSeverity,
    DiagnosticSource,
    Position,
    Range,
    RepairCode,
    RepairDiagnostic,
)
from fix_dockerfile.utils.io import dump_models, load_file, write_file


class TestSchema:
    """Test data models."""

    def test_repair_codes(self):
        """Test the stable code list."""
        assert len(RepairCode) == 18
        assert all(code.value.startswith("R:") for code in RepairCode)
        assert RepairCode.from_suffix("HERMITPORTS") is RepairCode.HERMITPORTS

    def test_range_helpers(self):
        """Test range construction and emptiness."""
        position = Position(line=2, character=4)

        assert Range.empty_at(position).is_empty
        assert not Range.from_coords(0, 0, 0, 3).is_empty

    def test_positions_are_immutable(self):
        """Test that positions cannot be changed or be negative."""
        position = Position(line=0, character=0)
        with pytest.raises(ValidationError):
            position.line = 3
        with pytest.raises(ValidationError):
            Position(line=-1, character=0)

    def test_diagnostic_json(self):
        """Test the serialized diagnostic."""
        diagnostic = RepairDiagnostic(
            range=Range.from_coords(2, 0, 2, 3),
            message="Some ports that could be exposed were detected.",
            code=RepairCode.HERMITPORTS,
            source=DiagnosticSource.TRACE_RECONCILIATION,
        )

        (data,) = json.loads(dump_models([diagnostic]))

        assert data == {
            "range": {"start": {"line": 2, "character": 0}, "end": {"line": 2, "character": 3}},
            "message": "Some ports that could be exposed were detected.",
            "code": "R:HERMITPORTS",
            "severity": "warning",
            "source": "trace-reconciliation",
        }
        assert diagnostic.severity is DiagnosticSeverity.WARNING

    def test_command_result_output(self):
        """Test that failures prefer stderr."""
        ok = CommandResult(exit_code=0, stdout="done", success=True, command="ls")
        failed = CommandResult(exit_code=1, stdout="x", stderr="boom", success=False, command="ls")

        assert ok.output == "done"
        assert failed.output == "boom"


class TestConfigs:
    """Test settings validation."""

    def test_defaults(self):
        """Test default values."""
        configs = Configs()

        assert configs.TRACE_DURATION == 5
        assert configs.KEEP_DEBUG_DUMP is False

    def test_environment_override(self, monkeypatch):
        """Test that environment variables are read."""
        monkeypatch.setenv("TRACE_DURATION", "12")

        assert Configs().TRACE_DURATION == 12

    def test_invalid_assignment(self):
        """Test that assignments are validated."""
        configs = Configs()
        with pytest.raises(ValidationError):
            configs.TRACE_DURATION = 0


class TestErrors:
    """Test the exception hierarchy."""

    def test_hierarchy(self):
        """Test that engine errors share a base."""
        assert issubclass(ToolingUnavailableError, EngineError)
        assert issubclass(BuildFailedError, EngineError)
        assert issubclass(EngineError, FixDockerfileError)

    def test_build_log(self):
        """Test that the build log travels with the error."""
        error = BuildFailedError("build failed", "E: Unable to locate package foo")
        assert error.build_log == "E: Unable to locate package foo"
        assert str(error) == "build failed"


class TestIO:
    """Test file helpers."""

    def test_newlines_are_preserved(self, tmp_path):
        """Test that CRLF survives a write and read."""
        path = tmp_path / "Dockerfile"
        write_file(path, "FROM node\r\nCMD x\r\n")

        assert load_file(path) == "FROM node\r\nCMD x\r\n"

    def test_backup(self, tmp_path):
        """Test that the previous content is backed up."""
        path = tmp_path / "Dockerfile"
        path.write_text("FROM old\n", encoding="utf-8")

        write_file(path, "FROM new\n", backup=True)

        assert path.read_text(encoding="utf-8") == "FROM new\n"
        assert (tmp_path / "Dockerfile.backup").read_text(encoding="utf-8") == "FROM old\n"
