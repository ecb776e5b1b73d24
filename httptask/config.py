"""httptask — Runtime configuration.

Configuration is loaded from (in order of increasing priority):
    1. Built-in defaults (this file)
    2. System config: /etc/httptask/config.yaml
    3. User config:   ~/.httptask/config.yaml
    4. An explicit config file passed to ``Settings.load()``
    5. Environment variables prefixed with HTTPTASK_

All settings are immutable after load.  Call ``Settings.load()`` once at
startup, or use ``get_settings()`` for the lazily-loaded singleton.
"""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from httptask.protocol.constants import DEFAULT_STORAGE_SCHEME


# ---------------------------------------------------------------------------
# Sub-configuration blocks
# ---------------------------------------------------------------------------


class LoggingConfig(BaseModel):
    level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    format: Literal["json", "console"] = "console"
    file: Path | None = None


class StorageConfig(BaseModel):
    scheme: str = Field(
        default=DEFAULT_STORAGE_SCHEME,
        pattern=r"^[a-z][a-z0-9+.-]*$",
        description="URI scheme that marks a form value as an internal content reference.",
    )
    base_dir: Path = Field(
        default=Path("~/.httptask/storage"),
        description="Directory that internal content references resolve into.",
    )


class ScratchConfig(BaseModel):
    root: Path | None = Field(
        default=None,
        description="Parent directory for per-execution scratch space. None = system temp dir.",
    )
    keep: bool = Field(
        default=False,
        description="Keep scratch files after the execution ends (debugging only).",
    )


# ---------------------------------------------------------------------------
# Root settings
# ---------------------------------------------------------------------------


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="HTTPTASK_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    scratch: ScratchConfig = Field(default_factory=ScratchConfig)

    @field_validator("storage", mode="before")
    @classmethod
    def expand_storage_paths(cls, v: object) -> object:
        if isinstance(v, dict) and isinstance(v.get("base_dir"), str):
            v["base_dir"] = Path(v["base_dir"]).expanduser()
        return v

    @classmethod
    def load(cls, config_file: Path | None = None) -> "Settings":
        """Load settings from file + environment variables."""
        data: dict[str, object] = {}

        candidates = [
            Path("/etc/httptask/config.yaml"),
            Path.home() / ".httptask" / "config.yaml",
        ]
        if config_file:
            candidates.append(config_file)

        for path in candidates:
            if path.exists():
                import yaml  # lazy import: only needed when a file exists

                with path.open() as f:
                    loaded = yaml.safe_load(f) or {}
                    data.update(loaded)

        return cls(**data)


# Module-level singleton, replaced by ``Settings.load()`` at startup.
_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings.load()
    return _settings


def override_settings(settings: Settings) -> None:
    """Replace the module-level singleton. Used in tests."""
    global _settings
    _settings = settings
