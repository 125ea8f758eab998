import json
import os
import shutil
import tempfile
from pathlib import Path
from unittest.mock import patch

import pytest

import spotcloud.crosscutting.config as config_module
from spotcloud.crosscutting.config import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MATCH_THRESHOLD,
    DEFAULT_SEARCH_LIMIT,
    ConfigError,
    SecretManager,
    get_secret_manager,
    setup_config,
)

CLIENT_KEYS = [
    'SPOTIFY_CLIENT_ID', 'SPOTIFY_CLIENT_SECRET', 'SPOTIFY_REDIRECT_URI',
    'SOUNDCLOUD_CLIENT_ID', 'SOUNDCLOUD_CLIENT_SECRET', 'SOUNDCLOUD_REDIRECT_URI',
]


class TestSecretManager:
    """Tests for SecretManager class."""

    def setup_method(self):
        """Set up test fixtures."""
        self.temp_dir = tempfile.mkdtemp()
        self.manager = SecretManager(self.temp_dir)
        self.env_patch = patch.dict(os.environ, {})
        self.env_patch.start()
        for key in CLIENT_KEYS:
            os.environ.pop(key, None)

    def teardown_method(self):
        """Clean up test fixtures."""
        self.env_patch.stop()
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _write_env(self, content: str) -> None:
        with open(self.manager.env_file, 'w') as f:
            f.write(content)

    def test_initialization(self):
        assert self.manager.config_dir == Path(self.temp_dir)
        assert self.manager.tokens_file == Path(self.temp_dir) / 'tokens.json'
        assert self.manager.env_file == Path(self.temp_dir) / '.env'
        assert self.manager.config_dir.exists()

    def test_load_tokens_missing_file(self):
        assert self.manager.load_tokens() == {}

    def test_save_tokens_merges(self):
        self.manager.save_spotify_token('sp_access', 'sp_refresh')
        self.manager.save_soundcloud_token('sc_access')

        tokens = self.manager.load_tokens()
        assert tokens['spotify'] == {'access_token': 'sp_access', 'refresh_token': 'sp_refresh'}
        assert tokens['soundcloud'] == {'access_token': 'sc_access'}

    def test_load_tokens_invalid_json(self):
        with open(self.manager.tokens_file, 'w') as f:
            f.write('{not json')

        with pytest.raises(ConfigError, match="Failed to load tokens"):
            self.manager.load_tokens()

    def test_token_lookup_prefers_environment(self):
        self.manager.save_spotify_token('stored_token')
        assert self.manager.get_spotify_token() == 'stored_token'

        os.environ['SPOTIFY_ACCESS_TOKEN'] = 'env_token'
        assert self.manager.get_spotify_token() == 'env_token'

    def test_soundcloud_token_from_env_file(self):
        self._write_env('SOUNDCLOUD_ACCESS_TOKEN=file_token\n')

        assert self.manager.get_soundcloud_token() == 'file_token'

    def test_missing_tokens(self):
        assert self.manager.get_spotify_token() is None
        assert self.manager.get_soundcloud_token() is None

    def test_load_env_vars(self):
        self._write_env('SPOTIFY_CLIENT_ID=abc\n# comment\nEMPTY\n')

        assert self.manager.load_env_vars() == {'SPOTIFY_CLIENT_ID': 'abc'}

    def test_get_value_precedence(self):
        self._write_env('SPOTIFY_CLIENT_ID=from_file\n')
        assert self.manager.get_value('SPOTIFY_CLIENT_ID') == 'from_file'

        os.environ['SPOTIFY_CLIENT_ID'] = 'from_env'
        assert self.manager.get_value('SPOTIFY_CLIENT_ID') == 'from_env'

        assert self.manager.get_value('UNKNOWN_KEY', 'fallback') == 'fallback'

    def test_matching_config_defaults(self):
        assert self.manager.get_matching_config() == {
            'search_limit': DEFAULT_SEARCH_LIMIT,
            'match_threshold': DEFAULT_MATCH_THRESHOLD,
            'http_timeout': float(DEFAULT_HTTP_TIMEOUT),
        }

    def test_matching_config_overrides(self):
        self._write_env('SPOTCLOUD_SEARCH_LIMIT=5\n')
        os.environ['SPOTCLOUD_MATCH_THRESHOLD'] = '0.45'

        settings = self.manager.get_matching_config()

        assert settings['search_limit'] == 5
        assert settings['match_threshold'] == 0.45

    @pytest.mark.parametrize("value", ['abc', '0', '-3'])
    def test_matching_config_invalid_limit(self, value):
        os.environ['SPOTCLOUD_SEARCH_LIMIT'] = value

        with pytest.raises(ConfigError):
            self.manager.get_matching_config()

    def test_config_summary_has_no_secrets(self):
        self.manager.save_spotify_token('very_secret_token_value')

        summary = self.manager.get_config_summary()

        assert summary['has_spotify_token'] is True
        assert summary['has_soundcloud_token'] is False
        assert summary['validation'] == {'spotify_token': True, 'soundcloud_token': False}
        assert 'very_secret_token_value' not in json.dumps(summary)

    def test_clear_tokens(self):
        self.manager.save_soundcloud_token('x')
        self.manager.clear_tokens()

        assert not self.manager.tokens_file.exists()
        self.manager.clear_tokens()


class TestGlobalSecretManager:

    def teardown_method(self):
        config_module._secret_manager = None

    def test_setup_config_replaces_global(self):
        temp_dir = tempfile.mkdtemp()
        try:
            manager = setup_config(temp_dir)

            assert get_secret_manager() is manager
            assert manager.config_dir == Path(temp_dir)
        finally:
            shutil.rmtree(temp_dir)

    def test_get_secret_manager_is_lazy_singleton(self):
        config_module._secret_manager = None
        with patch.object(config_module, 'SecretManager') as mock_cls:
            first = get_secret_manager()
            second = get_secret_manager()

        assert first is second
        mock_cls.assert_called_once_with()
