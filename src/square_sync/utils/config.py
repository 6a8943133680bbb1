"""
Configuration loader for the square-sync server.

Sources, lowest priority first:
- configuration files (JSON, YAML, TOML) and dicts, ordered by priority
- SQUARE_SYNC_* environment variables (``__`` separates nested keys)
- PORT / NODE_PORT for the listening port
"""

import os
import json
import asyncio
from pathlib import Path
from typing import Optional, Dict, Any, List, Union

import yaml
import toml
from pydantic import BaseModel, Field, field_validator, ValidationError, ConfigDict

from .logging import get_logger
from .errors import ConfigurationError


logger = get_logger("square-sync.config")

DEFAULT_PORT = 3000
ENV_PREFIX = "SQUARE_SYNC_"
PORT_ENV_VARS = ("PORT", "NODE_PORT")


class ConfigSource(BaseModel):
    """Configuration source definition."""
    path: Optional[Path] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    priority: int = 0
    source_type: str = "dict"


class ServerConfig(BaseModel):
    """HTTP / Socket.IO server configuration."""
    host: str = "0.0.0.0"
    port: int = DEFAULT_PORT
    cors_allowed_origins: Union[str, List[str]] = "*"
    client_path: Optional[Path] = None

    @field_validator('port')
    @classmethod
    def validate_port(cls, v):
        """Ensure port is in range."""
        if not 0 <= v <= 65535:
            raise ValueError(f"Invalid port: {v}")
        return v


class SyncConfig(BaseModel):
    """Synchronization core configuration."""
    default_group: str = "room1"
    notify_rejections: bool = True
    initial_x: Union[int, float] = 0
    initial_y: Union[int, float] = 0
    width: Union[int, float] = 100
    height: Union[int, float] = 100
    queue_size: int = 0  # 0 = unbounded

    @field_validator('width', 'height')
    @classmethod
    def validate_dimension(cls, v):
        """Square dimensions must be positive."""
        if v <= 0:
            raise ValueError("must be positive")
        return v

    @field_validator('default_group')
    @classmethod
    def validate_group(cls, v):
        if not v:
            raise ValueError("group name cannot be empty")
        return v


class LoggingConfig(BaseModel):
    """Logging configuration."""
    level: str = "INFO"
    format: str = "console"
    directory: Optional[Path] = None

    @field_validator('level')
    @classmethod
    def validate_level(cls, v):
        """Validate log level."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Invalid log level: {v}")
        return v.upper()

    @field_validator('format')
    @classmethod
    def validate_format(cls, v):
        if v not in ("json", "console"):
            raise ValueError(f"Invalid log format: {v}")
        return v


class SquareSyncConfig(BaseModel):
    """Main square-sync configuration."""
    app_name: str = "square-sync"
    version: str = "0.1.0"
    debug: bool = False

    server: ServerConfig = Field(default_factory=ServerConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = ConfigDict(validate_assignment=True)


class ConfigLoader:
    """Configuration loader with multiple source support."""

    def __init__(self, environ: Optional[Dict[str, str]] = None):
        """
        Initialize configuration loader.

        Args:
            environ: Environment mapping (defaults to os.environ)
        """
        self._sources: List[ConfigSource] = []
        self._config: Optional[SquareSyncConfig] = None
        self._environ = environ if environ is not None else os.environ
        self._lock = asyncio.Lock()

    def add_source(
        self,
        source: Union[str, Path, Dict[str, Any]],
        priority: int = 0,
        source_type: Optional[str] = None
    ) -> None:
        """
        Add configuration source.

        Args:
            source: Configuration source (file path or dict)
            priority: Source priority (higher wins)
            source_type: Source type (auto-detected if None)
        """
        if isinstance(source, (str, Path)):
            path = Path(source)
            if not source_type:
                source_type = self._detect_source_type(path)

            self._sources.append(ConfigSource(
                path=path,
                priority=priority,
                source_type=source_type
            ))
        else:
            self._sources.append(ConfigSource(
                data=source,
                priority=priority,
                source_type="dict"
            ))

        # Lowest priority first so later merges win
        self._sources.sort(key=lambda s: s.priority)

    def _detect_source_type(self, path: Path) -> str:
        """Detect configuration file type."""
        suffix = path.suffix.lower()
        if suffix == ".json":
            return "json"
        elif suffix in (".yaml", ".yml"):
            return "yaml"
        elif suffix == ".toml":
            return "toml"
        else:
            raise ConfigurationError(f"Unknown config file type: {suffix}")

    async def load(self) -> SquareSyncConfig:
        """
        Load configuration from all sources.

        Returns:
            Merged configuration
        """
        async with self._lock:
            merged_data: Dict[str, Any] = {}

            for source in self._sources:
                data = self._load_source(source)
                merged_data = self._deep_merge(merged_data, data)

            merged_data = self._deep_merge(merged_data, self._load_env_vars())

            port = self._load_port()
            if port is not None:
                merged_data = self._deep_merge(merged_data, {"server": {"port": port}})

            try:
                self._config = SquareSyncConfig(**merged_data)
            except ValidationError as e:
                errors = []
                for error in e.errors():
                    field = ".".join(str(x) for x in error["loc"])
                    errors.append(f"{field}: {error['msg']}")

                raise ConfigurationError(
                    f"Configuration validation failed: {'; '.join(errors)}"
                ) from e

            logger.info(
                "configuration_loaded",
                sources=len(self._sources),
                port=self._config.server.port,
            )
            return self._config

    def _load_source(self, source: ConfigSource) -> Dict[str, Any]:
        """Load data from a configuration source."""
        if source.path is None:
            return source.data

        if not source.path.exists():
            logger.warning("config_file_not_found", path=str(source.path))
            return {}

        content = source.path.read_text()

        try:
            if source.source_type == "json":
                return json.loads(content)
            elif source.source_type == "yaml":
                return yaml.safe_load(content) or {}
            elif source.source_type == "toml":
                return toml.loads(content)
        except (json.JSONDecodeError, yaml.YAMLError, toml.TomlDecodeError) as e:
            raise ConfigurationError(
                f"Failed to parse {source.path}: {e}", cause=e
            ) from e

        raise ConfigurationError(f"Unknown source type: {source.source_type}")

    def _load_env_vars(self) -> Dict[str, Any]:
        """Load SQUARE_SYNC_* environment variables."""
        result: Dict[str, Any] = {}

        for key, value in self._environ.items():
            if not key.startswith(ENV_PREFIX):
                continue

            parts = key[len(ENV_PREFIX):].lower().split("__")
            current = result
            for part in parts[:-1]:
                current = current.setdefault(part, {})

            if self._is_str_field(parts):
                current[parts[-1]] = value
            else:
                current[parts[-1]] = self._convert_value(value)

        return result

    def _load_port(self) -> Optional[int]:
        """Read the listening port from PORT, falling back to NODE_PORT."""
        for name in PORT_ENV_VARS:
            value = self._environ.get(name)
            if not value:
                continue
            try:
                return int(value)
            except ValueError as e:
                raise ConfigurationError(
                    f"{name} must be an integer, got {value!r}", cause=e
                ) from e
        return None

    def _is_str_field(self, parts: List[str]) -> bool:
        """Whether the config field addressed by ``parts`` is a plain string."""
        model = SquareSyncConfig
        for part in parts[:-1]:
            field = model.model_fields.get(part)
            nested = field.annotation if field is not None else None
            if not (isinstance(nested, type) and issubclass(nested, BaseModel)):
                return False
            model = nested

        field = model.model_fields.get(parts[-1])
        return field is not None and field.annotation is str

    def _convert_value(self, value: str) -> Any:
        """Convert string value to appropriate type."""
        if value.lower() in ("true", "yes", "on"):
            return True
        elif value.lower() in ("false", "no", "off"):
            return False

        try:
            if "." in value:
                return float(value)
            else:
                return int(value)
        except ValueError:
            pass

        if "," in value:
            return [v.strip() for v in value.split(",")]

        return value

    def _deep_merge(self, base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        """Deep merge two dictionaries."""
        result = base.copy()

        for key, value in update.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._deep_merge(result[key], value)
            else:
                result[key] = value

        return result

    def get_config(self) -> SquareSyncConfig:
        """Get current configuration."""
        if self._config is None:
            raise ConfigurationError("Configuration not loaded")
        return self._config


async def load_config(
    config_paths: Optional[List[Union[str, Path]]] = None,
    extra_config: Optional[Dict[str, Any]] = None,
    environ: Optional[Dict[str, str]] = None,
) -> SquareSyncConfig:
    """
    Load configuration from standard locations.

    Args:
        config_paths: Additional configuration paths
        extra_config: Extra configuration to merge (e.g. CLI overrides)
        environ: Environment mapping (defaults to os.environ)

    Returns:
        Loaded configuration
    """
    loader = ConfigLoader(environ=environ)

    default_paths = [
        Path.home() / ".square-sync" / "config.yaml",
        Path("./square-sync.yaml"),
        Path("./square-sync.json"),
    ]

    for path in default_paths:
        if path.exists():
            loader.add_source(path, priority=10)

    if config_paths:
        for i, path in enumerate(config_paths):
            loader.add_source(path, priority=20 + i)

    config = await loader.load()

    # CLI overrides beat the environment
    if extra_config:
        merged = loader._deep_merge(config.model_dump(), extra_config)
        try:
            config = SquareSyncConfig(**merged)
        except ValidationError as e:
            raise ConfigurationError(f"Invalid override: {e}") from e

    return config


__all__ = [
    'SquareSyncConfig',
    'ServerConfig',
    'SyncConfig',
    'LoggingConfig',
    'ConfigLoader',
    'load_config',
    'DEFAULT_PORT',
]
