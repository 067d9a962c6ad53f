"""
User configuration management for Image Comparator.

Supports configuration from multiple sources (in order of priority):
1. Runtime parameters (highest priority)
2. Environment variables
3. User config file (~/.config/image-comparator/config.json)
4. Default values from config.py (lowest priority)

Example config.json:
{
    "grid_size": 64,
    "threshold": 15,
    "workers": 8,
    "database_path": null,
    "ignore_paths": ["~/Library", "/mnt/backup/.snapshots"]
}
"""

import json
import os
from pathlib import Path
from typing import Any, Optional
import logging

from .config import (
    CACHE_DB_FILE,
    CONFIG_DIR,
    DEFAULT_GRID_SIZE,
    DEFAULT_THRESHOLD,
    DEFAULT_WORKERS,
)
from .models import ScanConfig

logger = logging.getLogger(__name__)


class UserConfig:
    """
    Manages user configuration from file and environment variables.

    Attributes are lazy-loaded and cached for performance.
    """

    _instance: Optional['UserConfig'] = None
    _config_data: Optional[dict] = None

    def __new__(cls):
        """Singleton pattern to ensure one config instance."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    @property
    def config_dir(self) -> Path:
        """Get the configuration directory path."""
        env_dir = os.getenv('IMGCOMPARATOR_CONFIG_DIR')
        if env_dir:
            return Path(env_dir)
        return Path(CONFIG_DIR)

    @property
    def config_file_path(self) -> Path:
        """Get the configuration file path."""
        return self.config_dir / 'config.json'

    def _load_config_file(self) -> dict:
        """Load configuration from JSON file."""
        if not self.config_file_path.exists():
            return {}

        try:
            with open(self.config_file_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Failed to load config file {self.config_file_path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.warning(f"Ignoring config file {self.config_file_path}: expected a JSON object")
            return {}
        logger.debug(f"Loaded configuration from {self.config_file_path}")
        return data

    def _get_config_data(self) -> dict:
        """Get cached config data (lazy loading)."""
        if self._config_data is None:
            self._config_data = self._load_config_file()
        return self._config_data

    def reload(self):
        """Reload configuration from file."""
        self._config_data = None

    def get(self, key: str, default: Any = None, env_var: Optional[str] = None) -> Any:
        """
        Get a configuration value with priority:
        1. Environment variable (if env_var specified)
        2. Config file
        3. Default value

        Args:
            key: Configuration key
            default: Default value if not found
            env_var: Optional environment variable name to check

        Returns:
            Configuration value
        """
        if env_var:
            env_value = os.getenv(env_var)
            if env_value is not None:
                # Try to parse as JSON for complex types
                try:
                    return json.loads(env_value)
                except (json.JSONDecodeError, TypeError):
                    return env_value

        config_data = self._get_config_data()
        if key in config_data:
            return config_data[key]

        return default

    @property
    def grid_size(self) -> int:
        """Fingerprint grid size (N x N bits)."""
        return self.get('grid_size', default=DEFAULT_GRID_SIZE, env_var='IMGCOMPARATOR_GRID_SIZE')

    @property
    def threshold(self) -> int:
        """Maximum Hamming distance for a duplicate link."""
        return self.get('threshold', default=DEFAULT_THRESHOLD, env_var='IMGCOMPARATOR_THRESHOLD')

    @property
    def workers(self) -> int:
        """Number of parallel workers."""
        return self.get('workers', default=DEFAULT_WORKERS, env_var='IMGCOMPARATOR_WORKERS')

    @property
    def database_path(self) -> str:
        """Path to cache database file."""
        custom = self.get('database_path', env_var='IMGCOMPARATOR_CACHE_DB')
        if custom:
            return os.path.expanduser(custom)
        return CACHE_DB_FILE

    @property
    def ignore_paths(self) -> list:
        """Path prefixes skipped during discovery."""
        value = self.get('ignore_paths', default=[], env_var='IMGCOMPARATOR_IGNORE_PATHS')
        if isinstance(value, str):
            # Plain environment strings use the OS path separator
            return [p for p in value.split(os.pathsep) if p]
        return list(value or [])

    def to_scan_config(self, **overrides) -> ScanConfig:
        """
        Build a ScanConfig from configured values.

        Args:
            **overrides: ScanConfig fields that take priority; None values
                are ignored so unset CLI options fall through

        Returns:
            Validated ScanConfig

        Raises:
            ConfigurationError: If the merged values are invalid
        """
        values = {
            'grid_size': self.grid_size,
            'threshold': self.threshold,
            'workers': self.workers,
            'cache_path': self.database_path,
            'ignore_paths': tuple(self.ignore_paths),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        return ScanConfig(**values)

    def create_example_config(self) -> bool:
        """Create an example configuration file."""
        example_config = {
            "_comment": "Image Comparator User Configuration",
            "grid_size": DEFAULT_GRID_SIZE,
            "threshold": DEFAULT_THRESHOLD,
            "workers": DEFAULT_WORKERS,
            "database_path": None,
            "ignore_paths": [],
        }

        try:
            self.config_dir.mkdir(parents=True, exist_ok=True)
            with open(self.config_file_path, 'w', encoding='utf-8') as f:
                json.dump(example_config, f, indent=2)
        except OSError as e:
            logger.error(f"Failed to create example config: {e}")
            return False
        logger.info(f"Created example config file at {self.config_file_path}")
        return True


# Global instance
_user_config = UserConfig()


def get_user_config() -> UserConfig:
    """Get the global UserConfig instance."""
    return _user_config
