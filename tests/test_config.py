"""
Tests for settings loading.
"""
import logging

import pytest

from bracket_core.config import configure_logging, get_default_settings, load_settings


class TestLoadSettings:
    """Tests for load_settings."""

    def test_defaults_without_file(self):
        settings = load_settings(None, environ={})
        assert settings == get_default_settings()
        assert settings['retry_max_attempts'] == 3
        assert settings['retry_backoff_ms'] == 100

    def test_missing_file_yields_defaults(self, tmp_path):
        settings = load_settings(str(tmp_path / 'nope.yaml'), environ={})
        assert settings['lock_timeout_seconds'] == 10

    def test_file_overrides_defaults(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text("retry_max_attempts: 5\norganization_admins:\n  - boss\n")
        settings = load_settings(str(path), environ={})
        assert settings['retry_max_attempts'] == 5
        assert settings['organization_admins'] == ['boss']
        assert settings['log_level'] == 'INFO'

    def test_invalid_yaml_is_ignored(self, tmp_path, caplog):
        path = tmp_path / 'settings.yaml'
        path.write_text("retry_max_attempts: [unclosed\n")
        with caplog.at_level(logging.WARNING):
            settings = load_settings(str(path), environ={})
        assert settings['retry_max_attempts'] == 3
        assert 'Failed to parse' in caplog.text

    def test_environment_wins_over_file(self, tmp_path):
        path = tmp_path / 'settings.yaml'
        path.write_text("retry_backoff_ms: 50\n")
        settings = load_settings(str(path), environ={
            'TOURNAMENT_RETRY_BACKOFF_MS': '300',
            'TOURNAMENT_DATA_DIR': '/srv/brackets',
        })
        assert settings['retry_backoff_ms'] == 300
        assert settings['data_dir'] == '/srv/brackets'

    def test_empty_environment_value_ignored(self):
        settings = load_settings(None, environ={'TOURNAMENT_RETRY_ATTEMPTS': ''})
        assert settings['retry_max_attempts'] == 3

    def test_bad_integer_in_environment(self):
        with pytest.raises(ValueError, match="TOURNAMENT_LOCK_TIMEOUT must be int"):
            load_settings(None, environ={'TOURNAMENT_LOCK_TIMEOUT': 'soon'})


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_unknown_level_does_not_raise(self):
        configure_logging({'log_level': 'chatty'})
