import os
import shutil
import tempfile
from pathlib import Path

import pytest

from auraluxe.crosscutting.config import (
    AppConfig, ConfigError, ConfigManager, get_config_manager, setup_config
)


class TestConfigManager:
    """Tests for ConfigManager class."""

    def setup_method(self):
        self.temp_dir = tempfile.mkdtemp()

    def teardown_method(self):
        if os.path.exists(self.temp_dir):
            shutil.rmtree(self.temp_dir)

    def _manager(self, **environ):
        return ConfigManager(self.temp_dir, environ=environ)

    def test_initialization(self):
        manager = self._manager()
        assert manager.config_dir == Path(self.temp_dir)
        assert manager.env_file == Path(self.temp_dir) / '.env'

    def test_defaults(self):
        config = self._manager().load()

        assert isinstance(config, AppConfig)
        assert config.lastfm_api_key is None
        assert config.youtube_api_key is None
        assert config.provider_timeout_sec == 5.0
        assert config.search_limit == 20
        assert config.max_limit == 100
        assert config.chart_term == 'top songs'
        assert config.data_dir == Path(self.temp_dir) / 'data'
        assert config.host == 'localhost'
        assert config.port == 5000
        assert config.log_level == 'INFO'

    def test_environment_overrides(self):
        config = self._manager(
            LASTFM_API_KEY='lastfm-key',
            YOUTUBE_API_KEY='  ',
            AURALUXE_PROVIDER_TIMEOUT='2.5',
            AURALUXE_SEARCH_LIMIT='10',
            AURALUXE_CHART_TERM='top hits',
            AURALUXE_DATA_DIR='/var/lib/auraluxe',
            AURALUXE_PORT='8080',
            AURALUXE_LOG_LEVEL='debug',
        ).load()

        assert config.lastfm_api_key == 'lastfm-key'
        assert config.youtube_api_key is None
        assert config.provider_timeout_sec == 2.5
        assert config.search_limit == 10
        assert config.chart_term == 'top hits'
        assert config.data_dir == Path('/var/lib/auraluxe')
        assert config.port == 8080
        assert config.log_level == 'DEBUG'

    def test_env_file_is_read_and_environment_wins(self):
        manager = self._manager(AURALUXE_SEARCH_LIMIT='30')
        (Path(self.temp_dir) / '.env').write_text('LASTFM_API_KEY=from-file\nAURALUXE_SEARCH_LIMIT=15\n')

        config = manager.load()

        assert config.lastfm_api_key == 'from-file'
        assert config.search_limit == 30

    @pytest.mark.parametrize('environ', [
        {'AURALUXE_PROVIDER_TIMEOUT': 'soon'},
        {'AURALUXE_PROVIDER_TIMEOUT': '0'},
        {'AURALUXE_SEARCH_LIMIT': '-5'},
        {'AURALUXE_PORT': 'http'},
        {'AURALUXE_SEARCH_LIMIT': '200'},
        {'AURALUXE_LOG_LEVEL': 'TRACE'},
    ])
    def test_invalid_values_raise(self, environ):
        with pytest.raises(ConfigError):
            self._manager(**environ).load()

    def test_validate_configuration(self):
        assert self._manager(YOUTUBE_API_KEY='yt').validate_configuration() == {
            'lastfm_api_key': False,
            'youtube_api_key': True,
        }

    def test_summary_has_no_secrets(self):
        summary = self._manager(LASTFM_API_KEY='super-secret-key').get_config_summary()

        assert summary['validation']['lastfm_api_key'] is True
        assert 'super-secret-key' not in str(summary)
        assert summary['search_limit'] == 20


def test_setup_config_replaces_global_manager(tmp_path):
    original = get_config_manager()
    try:
        manager = setup_config(str(tmp_path))
        assert get_config_manager() is manager
        assert manager.config_dir == tmp_path
    finally:
        setup_config(str(original.config_dir))
