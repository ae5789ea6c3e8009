"""Configuration management using Pydantic Settings."""

import logging
from functools import lru_cache
from pathlib import Path

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from daredevil.services.supabase import SupabaseConfig

logger = logging.getLogger(__name__)

YAML_SECTIONS = ("ledger", "bets", "supabase")


class LedgerConfig(BaseModel):
    """Points ledger view parameters."""

    poll_interval_seconds: int = 10
    transaction_limit: int = 50


class BetsConfig(BaseModel):
    """Bet listing and validation parameters."""

    default_limit: int = 50
    validate_picks: bool = True  # Check the pick belongs to the match before creating
    strict_pick_derivation: bool = False  # Raise instead of falling back to side B


class RemoteConfig(BaseModel):
    """HTTP tuning for the hosted backend; credentials live in the environment."""

    timeout_seconds: float = 30.0
    max_connections: int = 20
    max_keepalive_connections: int = 10
    max_retries: int = 3


class Settings(BaseSettings):
    """Main configuration class."""

    # Paths
    data_dir: Path = Path("data")

    # Hosted backend
    supabase_url: str = ""
    supabase_anon_key: str = ""
    supabase_email: str = ""
    supabase_password: str = ""

    logfire_token: str = ""

    # Nested configuration sections
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    bets: BetsConfig = Field(default_factory=BetsConfig)
    supabase: RemoteConfig = Field(default_factory=RemoteConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @field_validator("data_dir", mode="after")
    @classmethod
    def resolve_data_dir(cls, v: Path) -> Path:
        """Resolve data directory to absolute path."""
        return v.resolve()

    def supabase_config(self) -> SupabaseConfig:
        return SupabaseConfig(
            url=self.supabase_url or SupabaseConfig().url,
            anon_key=self.supabase_anon_key,
            **self.supabase.model_dump(),
        )

    def load_yaml_config(self) -> None:
        """Load and merge YAML configuration."""
        config_path = self.data_dir / "config.yaml"

        if not config_path.exists():
            logger.warning(
                f"Config file not found: {config_path}. "
                "Using defaults. Run 'python -m daredevil init' to create it."
            )
            return

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                yaml_config = yaml.safe_load(f)

            if not yaml_config:
                logger.warning(f"Empty config file: {config_path}")
                return

            for section_name in YAML_SECTIONS:
                if section_name in yaml_config:
                    section = getattr(self, section_name)
                    section_dict = section.model_dump()
                    section_dict.update(yaml_config[section_name] or {})
                    setattr(self, section_name, section.__class__(**section_dict))

            logger.info(f"Loaded configuration from {config_path}")

        except yaml.YAMLError as e:
            logger.error(f"Failed to parse YAML config: {e}")
            raise


@lru_cache()
def get_settings() -> Settings:
    """Get singleton Settings instance."""
    settings = Settings()
    settings.load_yaml_config()
    return settings
