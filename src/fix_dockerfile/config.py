"""
Global configuration settings
Priority:
0. cli settings
1. config profile
2. export environment variables
3. .env file (on dev mode)

Core modules never read this; the CLI passes the values they need explicitly.
"""

import copy
import logging.config
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from fix_dockerfile.constants import (
    CACHE_FILENAME,
    CONFIG_FILENAME,
    DEFAULT_LOG_LEVEL_INFO,
    DEFAULT_TIMEOUT,
    DEFAULT_TRACE_DURATION,
    DEV_ROOT,
    ENV_FILENAME,
    LOG_FILENAME,
    PROJECT_NAME,
    SCRATCH_DIRNAME,
    USER_CACHE_DIR,
    USER_CONFIG_DIR,
    USER_DATA_DIR,
    USER_LOG_DIR,
    USER_STATE_DIR,
)
from fix_dockerfile.utils import ui


def _load_dotenv(override: bool = False):
    env_path = DEV_ROOT / ENV_FILENAME
    load_dotenv(dotenv_path=env_path, override=override)


# 定义配置字典
LOGGING_CONFIG = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "[%(asctime)s] [%(levelname)s] [%(module)s:%(funcName)s:%(lineno)d] %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "simple": {
            "format": "%(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "rich.logging.RichHandler",
            "level": "INFO",
            "formatter": "simple",
            "rich_tracebacks": True,
            "show_path": False,
        },
        "file": {
            "class": "logging.FileHandler",
            "level": "DEBUG",
            "formatter": "standard",
            "filename": str(USER_LOG_DIR / LOG_FILENAME),
            "encoding": "utf-8",
        },
    },
    "loggers": {
        PROJECT_NAME: {
            "handlers": ["console", "file"],
            "level": "DEBUG",  # overridden in setup_logging
            "propagate": False,
        },
        "root": {
            "handlers": ["console", "file"],
            "level": "WARNING",
        },
        # docker SDK and its HTTP transport are noisy: file only
        "docker": {
            "handlers": ["file"],
            "level": "DEBUG",
            "propagate": False,
        },
        "urllib3": {
            "handlers": ["file"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def setup_logging(log_level: str, enabled_console: bool = False):
    """Setup logging configuration. Default log saved as file only. If enabled_console is True, also log to console."""
    if not USER_LOG_DIR.exists():
        ui.error(
            f"Log directory {USER_LOG_DIR} does not exist. Likely config not loaded."
        )
        raise FileNotFoundError(f"Log directory {USER_LOG_DIR} does not exist.")

    config = copy.deepcopy(LOGGING_CONFIG)
    if not enabled_console:
        config["loggers"][PROJECT_NAME]["handlers"].remove("console")

    config["loggers"][PROJECT_NAME]["level"] = log_level.upper()
    logging.config.dictConfig(config)
    ui.debug(f"Logging initialized with level {log_level}")
    ui.debug(f"Log file: {USER_LOG_DIR / LOG_FILENAME}")


class DirConfigs(BaseModel):
    """Directory configurations."""

    config_dir: Path = USER_CONFIG_DIR
    cache_dir: Path = USER_CACHE_DIR
    log_dir: Path = USER_LOG_DIR
    data_dir: Path = USER_DATA_DIR
    state_dir: Path = USER_STATE_DIR
    scratch_dir: Path = cache_dir / SCRATCH_DIRNAME

    cache_file: Path = cache_dir / CACHE_FILENAME
    log_file: Path = log_dir / LOG_FILENAME
    config_file: Path = config_dir / CONFIG_FILENAME


class Configs(BaseSettings):
    """Configuration for the trace-and-repair pipeline using Pydantic Settings."""

    # 追踪配置
    TRACE_DURATION: int = Field(
        default=DEFAULT_TRACE_DURATION,
        gt=0,
        description="Seconds the traced application is allowed to run",
    )

    # 日志配置
    LOG_LEVEL: str = Field(default=DEFAULT_LOG_LEVEL_INFO, description="Logging level")

    # 容器引擎配置
    TIMEOUT: int = Field(
        default=DEFAULT_TIMEOUT, gt=0, description="Container engine API timeout in seconds"
    )
    DOCKER_BASE_URL: Optional[str] = Field(
        default=None,
        description="Docker daemon URL, e.g. unix:///var/run/docker.sock (default: environment)",
    )

    KEEP_DEBUG_DUMP: bool = Field(
        default=False,
        description="Write the synthesized alternative Dockerfile to the scratch dir",
    )

    dir_configs: DirConfigs = Field(default_factory=DirConfigs)

    # dotenv is loaded into os.environ by _load_dotenv in dev mode
    model_config = SettingsConfigDict(
        env_file=None,
        env_file_encoding="utf-8",
        extra="ignore",
        validate_assignment=True,
    )


# ---------------------------------------------------------
# 配置管理器 (The Config Manager)
# ---------------------------------------------------------
class ConfigService:
    def __init__(self):
        # 懒加载：实例化时才去读取环境变量
        self._settings: Configs = None
        self._dir_settings: DirConfigs = None

    def _ensure_dirs(self):
        """确保所有运行时需要的目录都存在"""
        for attr in self._dir_settings.model_dump():
            if attr.endswith("_file"):
                continue

            path = getattr(self._dir_settings, attr)
            if isinstance(path, Path) and not path.exists():
                path.mkdir(parents=True, exist_ok=True)

        # only log file's file name contains path components
        self._dir_settings.log_file.parent.mkdir(parents=True, exist_ok=True)

    def load_config(self, *, dev_mode: bool = False, enabled_console: bool = False, **kwargs):
        """加载配置"""
        if dev_mode:
            _load_dotenv(override=False)

        self._settings = Configs()
        self._dir_settings = self._settings.dir_configs
        self._ensure_dirs()

        config_file = self._dir_settings.config_file
        if config_file.exists():
            ui.debug(f"Loading config file from {config_file}")
            try:
                with config_file.open("r", encoding="utf-8") as f:
                    data = yaml.safe_load(f) or {}
                    _profile_settings = Configs.model_validate(data)
                    # only keys present in the file override env values
                    kv_pairs = _profile_settings.model_dump(
                        exclude={"dir_configs"}, include=set(data)
                    ).items()
                    ui.debug(f"Config file key-values: {kv_pairs}")

                    for key, value in kv_pairs:
                        setattr(self._settings, key, value)
            except Exception as e:
                ui.error(f"Failed to load config file {config_file}: {e}")
                raise

        try:
            for key, value in kwargs.items():
                if value is None:
                    continue
                key = key.upper()
                if hasattr(self._settings, key):
                    setattr(self._settings, key, value)
                    ui.debug(f"Overridden config {key} from kwargs")
        except Exception as e:
            ui.error(f"Failed to override config with kwargs: {e}")
            raise

        setup_logging(self._settings.LOG_LEVEL, enabled_console=enabled_console)

    @property
    def config(self) -> Configs:
        """对外暴露静态配置"""
        if self._settings is None:
            ui.warning(
                "Configuration accessed before initialization. May cause issues."
            )
        return self._settings

    def save_config(self):
        """保存当前配置到文件 (YAML 格式)"""
        dump_settings = self._settings.model_dump(exclude={"dir_configs"})

        config_path = self._dir_settings.config_file
        with config_path.open("w", encoding="utf-8") as f:
            yaml.dump(dump_settings, f)


# ---------------------------------------------------------
# 单例导出 (Singleton Export)
# ---------------------------------------------------------
config_service = ConfigService()
