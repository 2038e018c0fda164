import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from orcamais.domain.errors import OrcaMaisError

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).resolve().parents[3]
USER_CONFIG_DIR = PROJECT_ROOT / "config"

load_dotenv(PROJECT_ROOT / ".env")


class ConfigurationError(OrcaMaisError):
    """Raised at startup when the backend cannot be configured."""
    pass


class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'categories.json')

        Raises:
            FileNotFoundError: If no config file was found

        Returns:
            Parsed JSON configuration
        """
        user_config_path = USER_CONFIG_DIR / config_name
        if user_config_path.exists():
            with open(user_config_path, encoding="utf-8") as f:
                return json.load(f)

        default_config_path = PACKAGE_CONFIG_DIR / config_name
        if default_config_path.exists():
            with open(default_config_path, encoding="utf-8") as f:
                return json.load(f)

        raise FileNotFoundError(
            f"Config file '{config_name}' not found in:\n"
            f" - {user_config_path}\n"
            f" - {default_config_path}"
        )

    @staticmethod
    def load_categories_config() -> Dict[str, Any]:
        """Load default categories and their suggestion keywords"""
        return ConfigLoader.load_config("categories.json")

    @staticmethod
    def load_rules_config() -> Dict[str, Any]:
        """Load user categorization rules"""
        return ConfigLoader.load_config("categorization_rules.json")


@dataclass
class Settings:
    """
    Runtime settings, read from the environment.

    A `.env` file at the project root is loaded first, so every value can
    live there during development.
    """
    backend: str = "sqlite"
    db_path: str = "data/orcamais.db"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None
    market_data_url: str = "https://brapi.dev/api"
    market_data_token: Optional[str] = None
    quotes_cache_ttl: int = 3600 # seconds
    log_level: str = "WARNING"

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from environment variables"""
        return cls(
            backend=os.getenv("ORCAMAIS_BACKEND", "sqlite").lower(),
            db_path=os.getenv("ORCAMAIS_DB_PATH", "data/orcamais.db"),
            supabase_url=os.getenv("SUPABASE_URL"),
            supabase_key=os.getenv("SUPABASE_KEY"),
            market_data_url=os.getenv("ORCAMAIS_MARKET_DATA_URL", "https://brapi.dev/api"),
            market_data_token=os.getenv("ORCAMAIS_MARKET_DATA_TOKEN"),
            quotes_cache_ttl=int(os.getenv("ORCAMAIS_QUOTES_CACHE_TTL", "3600")),
            log_level=os.getenv("ORCAMAIS_LOG_LEVEL", "WARNING").upper(),
        )

    def validate(self) -> None:
        """
        Fail fast on a backend that cannot work.

        Raises:
            ConfigurationError: Unknown backend or missing Supabase credentials
        """
        if self.backend not in ("sqlite", "supabase"):
            raise ConfigurationError(
                f"Unknown backend '{self.backend}' (expected 'sqlite' or 'supabase')"
            )

        if self.backend == "supabase" and not (self.supabase_url and self.supabase_key):
            raise ConfigurationError(
                "SUPABASE_URL and SUPABASE_KEY must be set to use the supabase backend"
            )
