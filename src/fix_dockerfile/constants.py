"""
Global constants for fix-dockerfile.
This module should NOT import any other internal modules to avoid circular dependencies.
"""

from enum import IntEnum
from pathlib import Path
from typing import Final

from platformdirs import PlatformDirs

# ---------------------------------------------------------
# 1. 基础元数据 (Basic Metadata)
# ---------------------------------------------------------
PROJECT_NAME: Final[str] = "fix-dockerfile"
__version__: Final[str] = "0.1.0"

# ---------------------------------------------------------
# 2. 默认值 (Defaults)
# 这些是代码逻辑的默认值，用户无法通过 .env 修改
# ---------------------------------------------------------
DEFAULT_ENCODING: Final[str] = "utf-8"
DEFAULT_TIMEOUT: Final[int] = 300  # seconds, container engine API
DEFAULT_TRACE_DURATION: Final[int] = 5  # seconds
DEFAULT_LOG_LEVEL_INFO: Final[str] = "INFO"

# ---------------------------------------------------------
# 3. 文件系统与路径 (Files & Paths)
# ---------------------------------------------------------
PKG_ROOT = Path(__file__).resolve().parent
DEV_ROOT: Final[Path] = PKG_ROOT.parent.parent

PLATFORM_DIRS: Final[PlatformDirs] = PlatformDirs(
    appname=PROJECT_NAME, appauthor=PROJECT_NAME, version=__version__
)

USER_DATA_DIR: Final[Path] = Path(PLATFORM_DIRS.user_data_dir)
USER_CONFIG_DIR: Final[Path] = Path(PLATFORM_DIRS.user_config_dir)
USER_CACHE_DIR: Final[Path] = Path(PLATFORM_DIRS.user_cache_dir)
USER_LOG_DIR: Final[Path] = Path(PLATFORM_DIRS.user_log_dir)
USER_STATE_DIR: Final[Path] = Path(PLATFORM_DIRS.user_state_dir)

# 固定的文件名
ENV_FILENAME: Final[str] = ".env"
CONFIG_FILENAME: Final[str] = "config.yaml"
CACHE_FILENAME: Final[str] = "cache.json"
LOG_FILENAME: Final[str] = "%Y/%m/%d/%H-%M-%S.log"
SCRATCH_DIRNAME: Final[str] = "scratch"

DOCKERFILE_NAME: Final[str] = "Dockerfile"
INSTRUMENTED_DOCKERFILE_NAME: Final[str] = "Dockerfile.strace"
ALTERNATIVE_DOCKERFILE_NAME: Final[str] = "Dockerfile.alternative"
DOCKERIGNORE_NAME: Final[str] = ".dockerignore"
SYSCALL_LOG_NAME: Final[str] = "syscall.log"

# ---------------------------------------------------------
# 4. 容器内追踪 (In-container tracing)
# ---------------------------------------------------------
TRACE_IMAGE_PREFIX: Final[str] = f"{PROJECT_NAME}-trace"
CONTAINER_SYSCALL_LOG: Final[str] = "/tmp/syscall.log"
TRACED_SYSCALLS: Final[str] = "bind"
STRACE_COMMAND: Final[tuple[str, ...]] = (
    "strace",
    "-f",
    "-T",
    "-e",
    f"trace={TRACED_SYSCALLS}",
    "-o",
    CONTAINER_SYSCALL_LOG,
)


# ---------------------------------------------------------
# 5. 枚举值 (Enums)
# ---------------------------------------------------------
class ExitCode(IntEnum):
    """标准的 CLI 退出码"""

    SUCCESS = 0
    ERROR_GENERAL = 1
    ERROR_DOCKER_BUILD = 2
    ERROR_TOOLING_UNAVAILABLE = 3
    ERROR_USER_CANCEL = 130  # Ctrl+C
