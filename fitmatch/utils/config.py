"""Configuration management"""
import os
import yaml
from pathlib import Path
from typing import Dict, Any
from dotenv import load_dotenv

load_dotenv()

PLACEHOLDER_API_KEY = "your-openai-api-key"
DEFAULT_CONFIG_PATH = "config/config.yaml"
PROJECT_ROOT = Path(__file__).resolve().parents[2]


class Config:
    """Application configuration manager

    Settings come from config/config.yaml (or the file named by
    FITMATCH_CONFIG); secrets and deployment overrides come from the
    environment, with .env loaded first.
    """

    def __init__(self, config_path: str = None):
        self.config_path = self._resolve_path(config_path or os.getenv("FITMATCH_CONFIG", DEFAULT_CONFIG_PATH))
        self._config = self._load_config()

    @staticmethod
    def _resolve_path(config_path: str) -> Path:
        path = Path(config_path)
        if not path.is_absolute() and not path.exists():
            path = PROJECT_ROOT / path
        return path

    def _load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file"""
        if self.config_path.exists():
            with open(self.config_path, 'r', encoding='utf-8') as f:
                return yaml.safe_load(f) or {}
        return {}

    @property
    def openai_api_key(self) -> str:
        return os.getenv("OPENAI_API_KEY", "")

    @property
    def narrative_enabled(self) -> bool:
        """Live narrative generation needs a real API key"""
        key = self.openai_api_key.strip()
        return bool(key) and PLACEHOLDER_API_KEY not in key

    @property
    def database_url(self) -> str:
        return os.getenv("DATABASE_URL") or self.get("database.url", "sqlite:///fitmatch.db")

    @property
    def llm_model(self) -> str:
        return os.getenv("OPENAI_RECOMMENDATION_MODEL") or self.get("llm.model", "gpt-4o-mini")

    @property
    def llm_timeout(self) -> float:
        return float(self.get("llm.timeout_seconds", 60))

    @property
    def candidate_pool_size(self) -> int:
        return int(self.get("recommendation.candidate_pool_size", 8))

    @property
    def batch_workers(self) -> int:
        return int(self.get("performance.max_workers", 10))

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by dot notation"""
        keys = key.split('.')
        value = self._config
        for k in keys:
            if isinstance(value, dict):
                value = value.get(k)
            else:
                return default
        return value if value is not None else default

# Global config instance
config = Config()
