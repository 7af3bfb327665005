"""Configuration management for the DoDidDone client."""

import os
import json
import logging
from typing import Dict, Any

logger = logging.getLogger(__name__)

DEFAULTS: Dict[str, Any] = {
    'server_url': 'http://127.0.0.1:8000',
    'site_url': 'http://localhost:3000',
    'view_mode': 'card',
}

VIEW_MODES = ('card', 'list')


def default_config_path() -> str:
    return os.getenv('DODIDDONE_CONFIG') or os.path.join(
        os.path.expanduser('~'), '.config', 'dodiddone', 'config.json'
    )


class Config:
    """JSON-file backed client settings with built-in defaults.

    Missing keys fall back to DEFAULTS; nothing is written until save() is
    called or a setter is used.
    """

    def __init__(self, config_file: str = None):
        self.config_file = config_file or default_config_path()
        self._config: Dict[str, Any] = {}
        self.load()

    def load(self) -> None:
        """Load configuration from file."""
        if not os.path.exists(self.config_file):
            self._config = {}
            return
        try:
            with open(self.config_file, 'r') as f:
                data = json.load(f)
        except (OSError, ValueError):
            # corrupted file
            logger.warning('ignoring unreadable config file %s', self.config_file)
            data = {}
        self._config = data if isinstance(data, dict) else {}

    def save(self) -> None:
        """Save configuration to file."""
        os.makedirs(os.path.dirname(os.path.abspath(self.config_file)), exist_ok=True)
        with open(self.config_file, 'w') as f:
            json.dump(self._config, f, indent=2)

    def _get(self, key: str) -> Any:
        return self._config.get(key, DEFAULTS[key])

    @property
    def server_url(self) -> str:
        return self._get('server_url').rstrip('/')

    @server_url.setter
    def server_url(self, value: str):
        self._config['server_url'] = value
        self.save()

    @property
    def site_url(self) -> str:
        return self._get('site_url').rstrip('/')

    @site_url.setter
    def site_url(self, value: str):
        self._config['site_url'] = value
        self.save()

    @property
    def view_mode(self) -> str:
        mode = self._get('view_mode')
        return mode if mode in VIEW_MODES else DEFAULTS['view_mode']

    @view_mode.setter
    def view_mode(self, value: str):
        if value not in VIEW_MODES:
            raise ValueError(f'view_mode must be one of {VIEW_MODES}')
        self._config['view_mode'] = value
        self.save()

    @property
    def reset_password_url(self) -> str:
        return f'{self.site_url}/reset-password'
