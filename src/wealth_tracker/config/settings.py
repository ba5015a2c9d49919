import json
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

# Package defaults (bundled with code)
PACKAGE_CONFIG_DIR = Path(__file__).parent / "defaults"

# User configs (in project root, gitignored)
PROJECT_ROOT = Path(__file__).parent.parent.parent.parent
USER_CONFIG_DIR = PROJECT_ROOT / "config"

DB_PATH_ENV = "WEALTH_TRACKER_DB"
API_KEY_ENV = "ANTHROPIC_API_KEY"


class ConfigLoader:
    """Load configuration with user overrides"""

    @staticmethod
    def load_config(config_name: str) -> Dict[str, Any]:
        """
        Load config with fallback: user config -> default config

        Args:
            config_name: Name of the config file (e.g., 'settings.json')

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
    def load_settings_config() -> Dict[str, Any]:
        """Load application settings"""
        return ConfigLoader.load_config('settings.json')

    @staticmethod
    def load_bank_categories_config() -> Dict[str, Any]:
        """Load the bank label -> category mapping"""
        return ConfigLoader.load_config('bank_categories.json')


@dataclass(frozen=True)
class AISettings:
    model: str = "claude-haiku-4-5"
    api_url: str = "https://api.anthropic.com/v1/messages"
    batch_size: int = 50
    timeout_seconds: float = 30
    max_retries: int = 1
    max_tokens: int = 4096
    max_confidence: float = 0.95
    api_key: Optional[str] = None

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)


@dataclass(frozen=True)
class PriceSettings:
    base_url: str = "https://api.coingecko.com/api/v3"
    timeout_seconds: float = 10


@dataclass(frozen=True)
class Settings:
    """
    Application settings.

    Built from settings.json (user override or packaged default), then
    from the environment:
        WEALTH_TRACKER_DB   overrides the database path
        ANTHROPIC_API_KEY   enables the AI categorization stage
    """
    database_path: str = "data/wealth.db"
    currency: str = "EUR"
    rule_cache_ttl_seconds: float = 60
    transfer_window_days: int = 3
    ai: AISettings = AISettings()
    prices: PriceSettings = PriceSettings()

    @classmethod
    def load(
        cls,
        config: Optional[Dict[str, Any]] = None,
        environ: Optional[Dict[str, str]] = None,
    ) -> "Settings":
        """
        Build settings from config and environment.

        Args:
            config: Optional config dict. If None, loads from ConfigLoader.
                Useful for testing with custom configs.
            environ: Optional environment mapping, defaults to os.environ
        """
        if config is None:
            config = ConfigLoader.load_settings_config()
        if environ is None:
            environ = dict(os.environ)

        ai_config = dict(config.get("ai", {}))
        ai_config["api_key"] = environ.get(API_KEY_ENV) or None

        return cls(
            database_path=environ.get(DB_PATH_ENV) or config.get("database_path", cls.database_path),
            currency=config.get("currency", cls.currency),
            rule_cache_ttl_seconds=config.get("rule_cache_ttl_seconds", cls.rule_cache_ttl_seconds),
            transfer_window_days=config.get("transfer_window_days", cls.transfer_window_days),
            ai=AISettings(**ai_config),
            prices=PriceSettings(**config.get("prices", {})),
        )
