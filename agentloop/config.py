"""Configuration management for agentloop."""

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, PydanticBaseSettingsSource, SettingsConfigDict

from agentloop.exceptions import ConfigurationError


# Paths
DEFAULT_HOME_PATH = Path("~/.agentloop").expanduser()
DEFAULT_CONFIG_PATH = DEFAULT_HOME_PATH / "config.yaml"
DEFAULT_HISTORY_PATH = DEFAULT_HOME_PATH / "agents"
LOCAL_CONFIG_FILENAME = "config.yaml"


class AgentConfig(BaseModel):
    """Defaults applied to every Agent that does not override them."""

    system_prompt: str = "You are {name}, a helpful AI assistant."
    max_iterations: int = Field(default=10, ge=1)


class DebugConfig(BaseModel):
    """Interactive breakpoint configuration."""

    enabled: bool = False


class HistoryConfig(BaseModel):
    """Behavior log configuration."""

    enabled: bool = True
    path: str = str(DEFAULT_HISTORY_PATH)


class ConsoleConfig(BaseModel):
    """Progress output configuration."""

    enabled: bool = True
    colors: bool = True
    log_dir: str = ""
    preview_chars: int = 50
    verbose_preview_chars: int = 120


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "console"


class Config(BaseSettings):
    """Main configuration for agentloop."""

    agent: AgentConfig = Field(default_factory=AgentConfig)
    debug: DebugConfig = Field(default_factory=DebugConfig)
    history: HistoryConfig = Field(default_factory=HistoryConfig)
    console: ConsoleConfig = Field(default_factory=ConsoleConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = SettingsConfigDict(
        env_prefix="AGENTLOOP_",
        env_file=".env",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        # YAML values arrive as init kwargs; environment wins over them
        return env_settings, dotenv_settings, init_settings, file_secret_settings

    @classmethod
    def resolve_default_config_path(cls) -> Path:
        """Resolve default config path with local-first precedence."""
        local_path = Path.cwd() / LOCAL_CONFIG_FILENAME
        if local_path.exists():
            return local_path
        return DEFAULT_CONFIG_PATH

    @classmethod
    def from_yaml(cls, path: Path | str | None = None) -> "Config":
        """Load configuration from YAML file."""
        config_path = Path(path).expanduser() if path else cls.resolve_default_config_path()

        if not config_path.exists():
            return cls()

        with open(config_path, encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file {config_path} must contain a mapping")

        return cls(**data)

    @classmethod
    def load(cls) -> "Config":
        """Load configuration, preferring env vars over YAML."""
        # Env vars are applied by BaseSettings on construction
        return cls.from_yaml()

    def save(self, path: Path | str | None = None) -> None:
        """Save configuration to YAML file."""
        config_path = Path(path).expanduser() if path else DEFAULT_CONFIG_PATH
        config_path.parent.mkdir(parents=True, exist_ok=True)

        data = self.model_dump(exclude_none=True)

        with open(config_path, "w", encoding="utf-8") as f:
            yaml.dump(data, f, default_flow_style=False, sort_keys=False)

    def to_yaml(self) -> str:
        """Render the effective configuration as YAML text."""
        data: dict[str, Any] = self.model_dump(exclude_none=True)
        return yaml.dump(data, default_flow_style=False, sort_keys=False)

    def render_system_prompt(self, name: str) -> str:
        """Fill the default system prompt template for an agent name."""
        template = self.agent.system_prompt or ""
        try:
            return template.format(name=name)
        except (KeyError, IndexError, ValueError):
            return template


# Global config instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = Config.load()
    return _config


def set_config(config: Config) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config
