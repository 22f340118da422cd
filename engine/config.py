"""
Configuration manager for the Bodega catalog.

Handles loading and managing application configuration from YAML files.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Any, List, Optional

import yaml

from utils.constants import (
    ADDED_VIEW_DEFAULT_DAYS,
    ADDED_WINDOW_DAYS,
    DEFAULT_DATA_FILES,
    REMOVED_ITEMS_FILE,
    SHOP_MAPPING_FILE,
)
from utils.paths import CONFIG_PATH, LOG_DIR


class ConfigError(Exception):
    """Raised when the configuration file cannot be read or parsed."""


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)

        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = CONFIG_PATH

        self._config = None

    def load_config(self) -> Dict[str, Any]:
        """Load configuration from YAML file.

        A missing file yields the defaults. An unreadable file or invalid YAML
        raises :class:`ConfigError`.
        """
        if not self.config_path.exists():
            self.logger.warning(f"Config file not found at {self.config_path}, using defaults")
            self._config = self.get_default_config()
            return self._config

        try:
            with self.config_path.open('r', encoding='utf-8') as f:
                config = yaml.safe_load(f)
        except OSError as e:
            self.logger.error(f"Failed to read configuration: {e}")
            raise ConfigError(f"Cannot read {self.config_path}: {e}") from e
        except yaml.YAMLError as e:
            self.logger.error(f"Failed to parse configuration: {e}")
            raise ConfigError(f"Invalid YAML in {self.config_path}: {e}") from e

        if config is None:
            config = {}
        if not isinstance(config, dict):
            raise ConfigError(f"Top level of {self.config_path} must be a mapping")

        self._config = self._merge_configs(self.get_default_config(), config)
        self.logger.info(f"Configuration loaded from {self.config_path}")
        return self._config

    def get_config(self) -> Dict[str, Any]:
        """Get current configuration, loading if necessary."""
        if self._config is None:
            return self.load_config()
        return self._config

    def get(self, key: str, default: Any = None) -> Any:
        """Get configuration value by key (supports dot notation)."""
        value = self.get_config()
        try:
            for k in key.split('.'):
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def set(self, key: str, value: Any):
        """Set configuration value by key (supports dot notation)."""
        keys = key.split('.')
        current = self.get_config()
        for k in keys[:-1]:
            if not isinstance(current.get(k), dict):
                current[k] = {}
            current = current[k]
        current[keys[-1]] = value

    def save_config(self, config: Optional[Dict[str, Any]] = None, config_path: Optional[str] = None):
        """Save configuration to YAML file."""
        if config is not None:
            self._config = config

        if not self._config:
            self.logger.warning("No configuration to save")
            return

        save_path = Path(config_path) if config_path else self.config_path
        save_path.parent.mkdir(parents=True, exist_ok=True)

        try:
            tmp_path = save_path.with_suffix(save_path.suffix + ".tmp")
            with open(tmp_path, 'w', encoding='utf-8') as f:
                yaml.safe_dump(self._config, f, default_flow_style=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_path, save_path)
            self.logger.info(f"Configuration saved to {save_path}")
        except OSError as e:
            self.logger.error(f"Failed to save configuration: {e}")
            raise ConfigError(f"Cannot write {save_path}: {e}") from e

    def get_default_config(self) -> Dict[str, Any]:
        """Return default configuration values."""
        return {
            'data': {
                'base_url': None,
                'directory': 'data',
                'files': list(DEFAULT_DATA_FILES),
                'removed_items_file': REMOVED_ITEMS_FILE,
                'shop_mapping_file': SHOP_MAPPING_FILE,
                'max_workers': 8,
                'timeout_seconds': 30,
            },
            'recency': {
                'added_window_days': ADDED_WINDOW_DAYS,
                'added_view_days': ADDED_VIEW_DEFAULT_DAYS,
            },
            'search': {
                'page_size': 100,
                'default_sort': {'field': 'name', 'direction': 'asc'},
                'include_shop_signs': False,
            },
            'relay': {
                'api_base': "https://api.github.com",
                'repository': "elanthia-online/bodega",
                'event_type': "shop_data_upload",
                'token_env': "GITHUB_TOKEN",
                'session_ttl_seconds': 3600,
                'timeout_seconds': 30,
            },
            'logging': {
                'level': "INFO",
                'file': str(LOG_DIR / "catalog.log"),
            },
        }

    def _merge_configs(self, default: Dict[str, Any], user: Dict[str, Any]) -> Dict[str, Any]:
        """Merge user configuration with defaults."""
        result = default.copy()

        for key, value in user.items():
            if key in result and isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = self._merge_configs(result[key], value)
            else:
                result[key] = value

        return result

    def get_data_config(self) -> Dict[str, Any]:
        return self.get('data', {})

    def get_relay_config(self) -> Dict[str, Any]:
        return self.get('relay', {})

    def get_added_window_days(self) -> int:
        return self.get('recency.added_window_days', ADDED_WINDOW_DAYS)

    def validate_config(self) -> List[str]:
        """Validate configuration and return list of errors."""
        errors = []
        config = self.get_config()

        for section in ('data', 'recency', 'relay'):
            if section not in config:
                errors.append(f"Missing required section: {section}")

        data = self.get_data_config()
        if not data.get('base_url') and not data.get('directory'):
            errors.append("Either data.base_url or data.directory must be set")
        if not data.get('files'):
            errors.append("No snapshot files configured")

        workers = data.get('max_workers', 1)
        if not isinstance(workers, int) or workers < 1:
            errors.append("data.max_workers must be a positive integer")

        window = self.get_added_window_days()
        if not isinstance(window, int) or window < 0:
            errors.append("recency.added_window_days must be a non-negative integer")

        relay = self.get_relay_config()
        if not relay.get('repository') or '/' not in str(relay.get('repository')):
            errors.append("relay.repository must look like owner/name")

        return errors
