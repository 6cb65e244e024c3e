import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


@dataclass(frozen=True)
class AppConfig:
    """Resolved application settings."""

    lastfm_api_key: Optional[str]
    youtube_api_key: Optional[str]
    provider_timeout_sec: float
    search_limit: int
    max_limit: int
    chart_term: str
    data_dir: Path
    host: str
    port: int
    log_level: str


class ConfigManager:
    """Loads configuration from the environment, overlaid on an optional .env file.

    Process environment wins over the .env file so deployments can override
    a checked-in default.
    """

    def __init__(self, config_dir: Optional[str] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """Initialize config manager."""
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.auraluxe'
        self.env_file = self.config_dir / '.env'
        self._environ = environ if environ is not None else os.environ

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the .env file, then apply the process environment."""
        values: Dict[str, str] = {}
        if self.env_file.exists():
            try:
                values.update({k: v for k, v in dotenv_values(self.env_file).items() if v is not None})
            except (IOError, UnicodeDecodeError) as e:
                raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
        values.update({k: v for k, v in self._environ.items() if v is not None})
        return values

    @staticmethod
    def _get_float(env: Dict[str, str], key: str, default: float) -> float:
        raw = env.get(key)
        if raw is None or not raw.strip():
            return default
        try:
            value = float(raw)
        except ValueError:
            raise ConfigError(f"{key} must be a number, got '{raw}'")
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got '{raw}'")
        return value

    @staticmethod
    def _get_int(env: Dict[str, str], key: str, default: int) -> int:
        raw = env.get(key)
        if raw is None or not raw.strip():
            return default
        try:
            value = int(raw)
        except ValueError:
            raise ConfigError(f"{key} must be an integer, got '{raw}'")
        if value <= 0:
            raise ConfigError(f"{key} must be positive, got '{raw}'")
        return value

    @staticmethod
    def _get_key(env: Dict[str, str], key: str) -> Optional[str]:
        value = (env.get(key) or '').strip()
        return value or None

    def load(self) -> AppConfig:
        """Resolve and validate all settings."""
        env = self.load_env_vars()

        search_limit = self._get_int(env, 'AURALUXE_SEARCH_LIMIT', 20)
        max_limit = self._get_int(env, 'AURALUXE_MAX_LIMIT', 100)
        if search_limit > max_limit:
            raise ConfigError("AURALUXE_SEARCH_LIMIT cannot exceed AURALUXE_MAX_LIMIT")

        log_level = env.get('AURALUXE_LOG_LEVEL', 'INFO').upper()
        if log_level not in ('DEBUG', 'INFO', 'WARNING', 'ERROR'):
            raise ConfigError(f"Unsupported AURALUXE_LOG_LEVEL '{log_level}'")

        data_dir = env.get('AURALUXE_DATA_DIR')

        return AppConfig(
            lastfm_api_key=self._get_key(env, 'LASTFM_API_KEY'),
            youtube_api_key=self._get_key(env, 'YOUTUBE_API_KEY'),
            provider_timeout_sec=self._get_float(env, 'AURALUXE_PROVIDER_TIMEOUT', 5.0),
            search_limit=search_limit,
            max_limit=max_limit,
            chart_term=env.get('AURALUXE_CHART_TERM') or 'top songs',
            data_dir=Path(data_dir) if data_dir else self.config_dir / 'data',
            host=env.get('AURALUXE_HOST') or 'localhost',
            port=self._get_int(env, 'AURALUXE_PORT', 5000),
            log_level=log_level,
        )

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which optional provider credentials are present."""
        env = self.load_env_vars()
        return {
            'lastfm_api_key': bool(self._get_key(env, 'LASTFM_API_KEY')),
            'youtube_api_key': bool(self._get_key(env, 'YOUTUBE_API_KEY')),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        config = self.load()
        validation = self.validate_configuration()
        return {
            'config_dir': str(self.config_dir),
            'env_file': str(self.env_file),
            'data_dir': str(config.data_dir),
            'validation': validation,
            'provider_timeout_sec': config.provider_timeout_sec,
            'search_limit': config.search_limit,
            'max_limit': config.max_limit,
            'chart_term': config.chart_term,
            'host': config.host,
            'port': config.port,
            'log_level': config.log_level,
        }


# Global instance
config_manager = ConfigManager()


def get_config_manager() -> ConfigManager:
    """Get global config manager instance."""
    return config_manager


def setup_config(config_dir: Optional[str] = None) -> ConfigManager:
    """Setup configuration with custom directory."""
    global config_manager
    config_manager = ConfigManager(config_dir)
    return config_manager
