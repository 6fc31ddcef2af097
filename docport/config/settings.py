"""Configuration settings using pydantic-settings."""

from functools import lru_cache
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict, YamlConfigSettingsSource

from docport.config.constants import (
    DEFAULT_CHUNK_DELAY,
    DEFAULT_CHUNK_SIZE,
    DEFAULT_CONFIG_FILE,
    DEFAULT_EXCLUDED_CONDITIONS,
    DEFAULT_GROUP_SIZE,
    DEFAULT_HEARTBEAT_INTERVAL,
    DEFAULT_LOG_DIR,
    DEFAULT_MAX_DEPTH,
    DEFAULT_MAX_FILE_SIZE,
    DEFAULT_PER_FILE_TIMEOUT,
    DEFAULT_STYLESHEET_NAME,
    SUPPORTED_EXTENSIONS,
)

TargetFormat = Literal["asciidoc", "writerside-markdown", "markdown", "zendesk", "text"]
VariableFormat = Literal["adoc", "writerside"]


class BatchSettings(BaseModel):
    """Throughput and time bounds for batch execution."""

    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1)
    chunk_delay: float = Field(default=DEFAULT_CHUNK_DELAY, ge=0)  # seconds
    per_file_timeout: float = Field(default=DEFAULT_PER_FILE_TIMEOUT, gt=0)  # seconds
    heartbeat_interval: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL, gt=0)  # seconds
    group_size: int = Field(default=DEFAULT_GROUP_SIZE, ge=1)


class FilterSettings(BaseModel):
    """File selection configuration."""

    recursive: bool = True
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    supported_extensions: list[str] = Field(default_factory=lambda: list(SUPPORTED_EXTENSIONS))
    include_patterns: list[str] = Field(default_factory=list)
    exclude_patterns: list[str] = Field(default_factory=list)
    excluded_conditions: list[str] = Field(
        default_factory=lambda: list(DEFAULT_EXCLUDED_CONDITIONS)
    )
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=1)


class ImageSettings(BaseModel):
    """Image asset configuration."""

    copy_images: bool = True


class OutputSettings(BaseModel):
    """Output layout configuration."""

    target_format: TargetFormat = "asciidoc"
    preserve_structure: bool = True
    rename_files_from_heading: bool = False
    extract_variables: bool = False
    variable_format: VariableFormat | None = None
    variables_output_path: str | None = None
    include_glossary: bool = False
    generate_stylesheet: bool = False
    stylesheet_path: str = DEFAULT_STYLESHEET_NAME
    generate_master_doc: bool = False


class DocportSettings(BaseSettings):
    """Main configuration class for docport."""

    model_config = SettingsConfigDict(
        env_prefix="DOCPORT_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls, settings_cls, init_settings, env_settings, dotenv_settings, file_secret_settings
    ):
        """Customize settings sources to include YAML file."""
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=DEFAULT_CONFIG_FILE),
            file_secret_settings,
        )

    # Sub-configurations
    batch: BatchSettings = Field(default_factory=BatchSettings)
    filter: FilterSettings = Field(default_factory=FilterSettings)
    images: ImageSettings = Field(default_factory=ImageSettings)
    output: OutputSettings = Field(default_factory=OutputSettings)

    # Global settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_dir: str = DEFAULT_LOG_DIR


class BatchConfig(BaseModel):
    """Every option of one batch run, resolved once.

    Instances are immutable. Build one from settings with ``from_settings`` and
    pass it down; no component reads settings on its own.
    """

    model_config = ConfigDict(frozen=True)

    recursive: bool = True
    preserve_structure: bool = True
    copy_images: bool = True
    rename_files_from_heading: bool = False
    include_patterns: tuple[str, ...] = ()
    exclude_patterns: tuple[str, ...] = ()
    use_toc_plan: bool = False
    chunk_size: int = Field(default=DEFAULT_CHUNK_SIZE, ge=1)
    chunk_delay: float = Field(default=DEFAULT_CHUNK_DELAY, ge=0)
    per_file_timeout: float = Field(default=DEFAULT_PER_FILE_TIMEOUT, gt=0)
    heartbeat_interval: float = Field(default=DEFAULT_HEARTBEAT_INTERVAL, gt=0)
    group_size: int = Field(default=DEFAULT_GROUP_SIZE, ge=1)
    max_depth: int = Field(default=DEFAULT_MAX_DEPTH, ge=0)
    target_format: TargetFormat = "asciidoc"
    supported_extensions: tuple[str, ...] = SUPPORTED_EXTENSIONS
    excluded_conditions: tuple[str, ...] = DEFAULT_EXCLUDED_CONDITIONS
    max_file_size: int = Field(default=DEFAULT_MAX_FILE_SIZE, ge=1)
    extract_variables: bool = False
    variable_format: VariableFormat | None = None
    variables_output_path: str | None = None
    include_glossary: bool = False
    generate_stylesheet: bool = False
    stylesheet_path: str = DEFAULT_STYLESHEET_NAME
    generate_master_doc: bool = False

    @field_validator("supported_extensions", mode="before")
    @classmethod
    def _normalize_extensions(cls, value: Any) -> tuple[str, ...]:
        exts = []
        for ext in value:
            ext = ext.lower()
            exts.append(ext if ext.startswith(".") else f".{ext}")
        return tuple(exts)

    @field_validator("excluded_conditions", mode="before")
    @classmethod
    def _normalize_conditions(cls, value: Any) -> tuple[str, ...]:
        return tuple(c.strip().lower() for c in value if c.strip())

    @classmethod
    def from_settings(cls, settings: DocportSettings | None = None, **overrides: Any) -> "BatchConfig":
        """Build a config from settings, applying explicit overrides.

        Overrides whose value is None are ignored so CLI options left at their
        default fall through to the configured value.

        Args:
            settings: Loaded settings (defaults to the cached global settings)
            **overrides: Field values that take precedence over settings

        Returns:
            A frozen BatchConfig
        """
        settings = settings or get_settings()
        values: dict[str, Any] = {
            **settings.batch.model_dump(),
            **settings.filter.model_dump(),
            **settings.images.model_dump(),
            **settings.output.model_dump(),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)


@lru_cache
def get_settings() -> DocportSettings:
    """Get cached settings instance."""
    return DocportSettings()


def reload_settings() -> DocportSettings:
    """Force reload settings (clear cache)."""
    get_settings.cache_clear()
    return get_settings()
