"""Configuration management with environment variables and CLI overrides."""

from pathlib import Path
from typing import Optional

import structlog
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict
from rich.console import Console
from rich.table import Table

logger = structlog.get_logger()

# ---------------------------------------------------------------------------
# Sub-config models
# ---------------------------------------------------------------------------


class LLMConfig(BaseSettings):
    """LLM/OpenAI configuration."""

    model_config = SettingsConfigDict(env_prefix="OPENAI_")

    api_key: str = Field(default="", description="OpenAI API key")
    base_url: str = Field(default="https://api.openai.com/v1", description="API base URL")
    model: str = Field(default="gpt-4.1", description="Model name")
    max_tokens: int = Field(default=4096, description="Max tokens per request")
    temperature: float = Field(default=0.7, description="Temperature for generation")


class TaskLLMConfig(BaseSettings):
    """Base class for task-specific LLM overrides.

    Empty fields fall back to the default LLM config.
    """

    api_key: str = Field(default="", description="API key")
    base_url: str = Field(default="", description="API base URL")
    model: str = Field(default="", description="Model name")
    max_tokens: int = Field(default=0, description="Max tokens per request")
    temperature: float = Field(default=0.0, description="Temperature")


class GlossaryUpdateLLMConfig(TaskLLMConfig):
    """LLM configuration for glossary conflict arbitration."""

    model_config = SettingsConfigDict(env_prefix="GLOSSARY_UPDATE_LLM_")


class MergeConfig(BaseSettings):
    """Glossary merge session configuration."""

    model_config = SettingsConfigDict(env_prefix="MERGE_")

    source_lang: str = Field(default="ja", description="Source language code of glossary keys")
    target_lang: str = Field(default="en", description="Target language code of glossary values")
    max_retries: int = Field(
        default=3, description="Transport retries per arbitration request"
    )
    temperature: float = Field(
        default=0.2, description="Temperature for arbitration requests (low = conservative)"
    )

    @property
    def language_pair(self) -> str:
        """Language pair key such as ``ja_en``."""
        return f"{self.source_lang}_{self.target_lang}"


# ---------------------------------------------------------------------------
# Main AppConfig
# ---------------------------------------------------------------------------


class AppConfig(BaseSettings):
    """Main application configuration."""

    model_config = SettingsConfigDict(env_prefix="")

    log_level: str = Field(default="INFO", description="Logging level")

    llm: LLMConfig = Field(default_factory=LLMConfig)
    merge: MergeConfig = Field(default_factory=MergeConfig)

    # Task-specific LLM config (falls back to llm if not set)
    glossary_update_llm: GlossaryUpdateLLMConfig = Field(
        default_factory=GlossaryUpdateLLMConfig
    )

    @classmethod
    def load(cls, env_file: Optional[Path] = None) -> "AppConfig":
        """Load configuration from environment and .env file."""
        from dotenv import load_dotenv

        if env_file and env_file.exists():
            load_dotenv(env_file)
        else:
            load_dotenv()

        return cls(
            llm=LLMConfig(),
            merge=MergeConfig(),
            glossary_update_llm=GlossaryUpdateLLMConfig(),
        )


# ---------------------------------------------------------------------------
# Global config singleton
# ---------------------------------------------------------------------------

_config: Optional[AppConfig] = None


def get_config() -> AppConfig:
    """Get the global configuration instance."""
    global _config
    if _config is None:
        _config = AppConfig.load()
    return _config


def set_config(config: AppConfig) -> None:
    """Set the global configuration instance."""
    global _config
    _config = config


# ---------------------------------------------------------------------------
# LLM config helpers
# ---------------------------------------------------------------------------


def mask_api_key(api_key: str) -> str:
    """Show only the first characters of an API key."""
    return api_key[:8] + "..." if len(api_key) > 8 else "***"


def get_effective_llm_config(
    specific: TaskLLMConfig,
    fallback: LLMConfig,
    task_name: Optional[str] = None,
) -> LLMConfig:
    """Merge specific LLM config with fallback for unset values.

    Args:
        specific: Task-specific config (e.g. GlossaryUpdateLLMConfig)
        fallback: Default LLMConfig to use for unset values
        task_name: Optional task name for debug logging

    Returns:
        LLMConfig with merged values
    """
    effective = LLMConfig(
        api_key=specific.api_key or fallback.api_key,
        base_url=specific.base_url or fallback.base_url,
        model=specific.model or fallback.model,
        max_tokens=specific.max_tokens or fallback.max_tokens,
        temperature=specific.temperature if specific.temperature > 0 else fallback.temperature,
    )

    if task_name:
        logger.debug(
            "llm_config_effective",
            task=task_name,
            model=effective.model,
            model_source="specific" if specific.model else "default",
            api_key=mask_api_key(effective.api_key),
            base_url=effective.base_url,
            max_tokens=effective.max_tokens,
            temperature=effective.temperature,
        )

    return effective


def log_llm_config_summary(console: Optional[Console] = None) -> None:
    """Print a table of the default and arbitration LLM configurations."""
    console = console or Console()
    app_config = get_config()

    console.print("\n[bold blue]=== LLM Configuration ===[/bold blue]")

    table = Table(show_header=True, header_style="bold blue")
    table.add_column("Task", style="cyan", width=16)
    table.add_column("Model", style="green")
    table.add_column("Base URL", style="yellow")
    table.add_column("Max Tokens", style="magenta", justify="right")
    table.add_column("Temperature", style="magenta", justify="right")
    table.add_column("Source", style="dim")

    table.add_row(
        "Default",
        app_config.llm.model,
        app_config.llm.base_url,
        str(app_config.llm.max_tokens),
        str(app_config.llm.temperature),
        "OPENAI_*",
    )

    task_cfg = app_config.glossary_update_llm
    effective = get_effective_llm_config(task_cfg, app_config.llm)
    source = "GLOSSARY_UPDATE_LLM_*" if task_cfg.model else "OPENAI_* (fallback)"
    table.add_row(
        "Glossary update",
        effective.model,
        effective.base_url,
        str(effective.max_tokens),
        str(effective.temperature),
        source,
    )

    console.print(table)
    console.print(
        f"[blue]Language pair:[/blue] {app_config.merge.language_pair}"
        f"  [blue]Arbitration temperature:[/blue] {app_config.merge.temperature}"
    )
    console.print()
