"""
Settings for the engine's service layer and its adapters.

Defaults are overlaid by a YAML settings file and then by environment variables.
"""
import logging
import os
from typing import Dict, Optional

import yaml

logger = logging.getLogger(__name__)

BASE_DIR = os.path.dirname(os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Environment variable -> (setting key, converter)
ENV_OVERRIDES = {
    'TOURNAMENT_DATA_DIR': ('data_dir', str),
    'TOURNAMENT_LOG_LEVEL': ('log_level', str),
    'TOURNAMENT_RETRY_ATTEMPTS': ('retry_max_attempts', int),
    'TOURNAMENT_RETRY_BACKOFF_MS': ('retry_backoff_ms', int),
    'TOURNAMENT_LOCK_TIMEOUT': ('lock_timeout_seconds', int),
}


def get_default_settings() -> Dict:
    """Return default settings."""
    return {
        'data_dir': os.path.join(BASE_DIR, 'data'),
        'log_level': 'INFO',
        'lock_timeout_seconds': 10,
        'retry_max_attempts': 3,
        'retry_backoff_ms': 100,
        'payment_deadline_hours': 2,
        'organization_admins': [],
    }


def load_settings(path: Optional[str] = None, environ=None) -> Dict:
    """
    Load settings from a YAML file, merging with defaults, then apply environment overrides.

    A missing or empty file yields the defaults. An unparsable file is logged
    and ignored. An environment value that cannot be converted raises ValueError.
    """
    settings = get_default_settings()
    environ = os.environ if environ is None else environ

    if path and os.path.exists(path):
        try:
            with open(path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            logger.warning(f'Failed to parse {path}: {e}')
            data = None
        if isinstance(data, dict):
            settings.update(data)

    for variable, (key, convert) in ENV_OVERRIDES.items():
        raw = environ.get(variable)
        if raw is None or raw == '':
            continue
        try:
            settings[key] = convert(raw)
        except ValueError:
            raise ValueError(f"{variable} must be {convert.__name__}, got {raw!r}")

    return settings


def configure_logging(settings: Dict) -> None:
    """Apply the configured log level to the root logger."""
    level = getattr(logging, str(settings.get('log_level', 'INFO')).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s')
