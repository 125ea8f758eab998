import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import dotenv_values


class ConfigError(Exception):
    """Configuration error."""
    pass


DEFAULT_SEARCH_LIMIT = 20
DEFAULT_MATCH_THRESHOLD = 0.3
DEFAULT_HTTP_TIMEOUT = 15


class SecretManager:
    """Manages application secrets and configuration.

    Values are looked up in the process environment first, then in the
    `.env` file of the config directory, then (for tokens) in tokens.json.
    """

    def __init__(self, config_dir: Optional[str] = None):
        self.config_dir = Path(config_dir) if config_dir else Path.home() / '.spotcloud'
        self.config_dir.mkdir(parents=True, exist_ok=True)

        self.tokens_file = self.config_dir / 'tokens.json'
        self.env_file = self.config_dir / '.env'

    def load_tokens(self) -> Dict[str, Any]:
        """Load tokens from tokens.json file."""
        if not self.tokens_file.exists():
            return {}

        try:
            with open(self.tokens_file, 'r') as f:
                return json.load(f)
        except (json.JSONDecodeError, IOError) as e:
            raise ConfigError(f"Failed to load tokens from {self.tokens_file}: {e}")

    def save_tokens(self, tokens: Dict[str, Any]) -> None:
        """Merge `tokens` into tokens.json."""
        existing_tokens = self.load_tokens()
        existing_tokens.update(tokens)
        try:
            with open(self.tokens_file, 'w') as f:
                json.dump(existing_tokens, f, indent=2, ensure_ascii=False)
        except IOError as e:
            raise ConfigError(f"Failed to save tokens to {self.tokens_file}: {e}")

    def _get_stored_token(self, service: str) -> Optional[str]:
        return self.load_tokens().get(service, {}).get('access_token')

    def get_spotify_token(self) -> Optional[str]:
        return self.get_value('SPOTIFY_ACCESS_TOKEN') or self._get_stored_token('spotify')

    def save_spotify_token(self, access_token: str, refresh_token: Optional[str] = None) -> None:
        entry = {'access_token': access_token}
        if refresh_token:
            entry['refresh_token'] = refresh_token
        self.save_tokens({'spotify': entry})

    def get_soundcloud_token(self) -> Optional[str]:
        return self.get_value('SOUNDCLOUD_ACCESS_TOKEN') or self._get_stored_token('soundcloud')

    def save_soundcloud_token(self, access_token: str) -> None:
        self.save_tokens({'soundcloud': {'access_token': access_token}})

    def load_env_vars(self) -> Dict[str, str]:
        """Load variables from the config directory's .env file."""
        if not self.env_file.exists():
            return {}
        try:
            values = dotenv_values(self.env_file)
        except (IOError, UnicodeDecodeError) as e:
            raise ConfigError(f"Failed to load .env file {self.env_file}: {e}")
        return {key: value for key, value in values.items() if value is not None}

    def get_value(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Look up a setting in the process environment, then in .env."""
        value = os.getenv(key)
        if value is not None and value.strip():
            return value
        return self.load_env_vars().get(key, default)

    def get_matching_config(self) -> Dict[str, Any]:
        """Search and matching tunables."""
        try:
            search_limit = int(self.get_value('SPOTCLOUD_SEARCH_LIMIT', str(DEFAULT_SEARCH_LIMIT)))
            threshold = float(self.get_value('SPOTCLOUD_MATCH_THRESHOLD', str(DEFAULT_MATCH_THRESHOLD)))
            timeout = float(self.get_value('SPOTCLOUD_HTTP_TIMEOUT', str(DEFAULT_HTTP_TIMEOUT)))
        except ValueError as e:
            raise ConfigError(f"Invalid matching configuration: {e}")

        if search_limit <= 0:
            raise ConfigError("SPOTCLOUD_SEARCH_LIMIT must be positive")

        return {
            'search_limit': search_limit,
            'match_threshold': threshold,
            'http_timeout': timeout,
        }

    def validate_configuration(self) -> Dict[str, bool]:
        """Report which settings are present."""
        return {
            'spotify_token': bool(self.get_spotify_token()),
            'soundcloud_token': bool(self.get_soundcloud_token()),
        }

    def get_config_summary(self) -> Dict[str, Any]:
        """Get configuration summary (without sensitive data)."""
        validation = self.validate_configuration()

        return {
            'config_dir': str(self.config_dir),
            'tokens_file': str(self.tokens_file),
            'env_file': str(self.env_file),
            'validation': validation,
            'has_spotify_token': validation['spotify_token'],
            'has_soundcloud_token': validation['soundcloud_token'],
        }

    def clear_tokens(self) -> None:
        """Clear all stored tokens."""
        if self.tokens_file.exists():
            self.tokens_file.unlink()


_secret_manager: Optional[SecretManager] = None


def get_secret_manager() -> SecretManager:
    """Get the process-wide secret manager, creating it on first use."""
    global _secret_manager
    if _secret_manager is None:
        _secret_manager = SecretManager()
    return _secret_manager


def setup_config(config_dir: Optional[str] = None) -> SecretManager:
    """Setup configuration with custom directory."""
    global _secret_manager
    _secret_manager = SecretManager(config_dir)
    return _secret_manager
