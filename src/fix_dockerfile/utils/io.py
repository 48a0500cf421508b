import json
import shutil
from pathlib import Path
from typing import Any, Dict

from fix_dockerfile.constants import DEFAULT_ENCODING
from fix_dockerfile.utils import ui

# ---------------------------------------------------------
# Helper / IO Functions
# ---------------------------------------------------------


def format_json(data: Any) -> str:
    """Format data as pretty JSON string."""
    return json.dumps(data, indent=2, ensure_ascii=False)


def load_file(file_path: Path) -> str:
    """Load file content with error handling. Line endings are kept as-is."""
    try:
        with file_path.open("r", encoding=DEFAULT_ENCODING, newline="") as f:
            content = f.read()
        ui.debug(f"Loaded file: {file_path}")
        return content
    except FileNotFoundError:
        ui.error(f"File not found: {file_path}")
        raise
    except IOError as e:
        ui.error(f"Failed to read file {file_path}: {e}")
        raise


def write_file(file_path: Path, content: str, backup: bool = False) -> None:
    """
    Write text without newline translation.

    Args:
        file_path: Destination file
        content: Text to write
        backup: Copy the existing file to ``<name>.backup`` first
    """
    if backup and file_path.exists():
        backup_path = file_path.with_suffix(file_path.suffix + ".backup")
        shutil.copy2(file_path, backup_path)
        ui.info(f"Backup saved to {backup_path}")

    with file_path.open("w", encoding=DEFAULT_ENCODING, newline="") as f:
        f.write(content)
    ui.debug(f"Wrote file: {file_path}")


def remove_quietly(path: Path) -> None:
    """Delete a scratch file if it exists, logging instead of raising."""
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        ui.warning(f"Failed to remove temporary file {path}: {e}")


def dump_models(models: list) -> str:
    """Serialise a list of pydantic models to JSON."""
    data: list[Dict[str, Any]] = [m.model_dump(mode="json") for m in models]
    return format_json(data)
