"""Configuration management service"""

import logging

import yaml

from ..api.exceptions import AlreadyInitialized, ConfigCorrupt, NotInitialized
from ..core.path_resolver import AppPaths
from ..models.config import DeployConfig
from ..utils.file_utils import atomic_write_text

logger = logging.getLogger(__name__)


class ConfigStore:
    """Persists and loads one application's DeployConfig"""

    def __init__(self, paths: AppPaths):
        """Initialize config store

        Args:
            paths: Application path resolver
        """
        self.paths = paths
        self.config_path = paths.config_file

    def exists(self) -> bool:
        """Check if a config has been written"""
        return self.config_path.exists()

    def initialize(self, config: DeployConfig, overwrite: bool = False) -> DeployConfig:
        """Persist the config

        Args:
            config: Configuration to save
            overwrite: Replace an existing config instead of refusing

        Returns:
            Saved configuration

        Raises:
            AlreadyInitialized: If a config exists and ``overwrite`` is false
        """
        if self.exists() and not overwrite:
            raise AlreadyInitialized(self.paths.app_name)

        content = yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)
        atomic_write_text(self.config_path, content)

        logger.info(f"Configuration saved to {self.config_path}")
        return config

    def load(self) -> DeployConfig:
        """Load configuration from file

        Returns:
            Loaded configuration

        Raises:
            NotInitialized: If the application was never set up
            ConfigCorrupt: If the file cannot be parsed into a complete record
        """
        if not self.exists():
            raise NotInitialized(self.paths.app_name)

        try:
            with open(self.config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise ConfigCorrupt(f"Cannot parse {self.config_path}: {e}") from e
        except OSError as e:
            raise ConfigCorrupt(f"Cannot read {self.config_path}: {e}") from e

        if not isinstance(data, dict):
            raise ConfigCorrupt(f"{self.config_path} does not contain a mapping")

        try:
            return DeployConfig.from_dict(data)
        except ValueError as e:
            raise ConfigCorrupt(f"{self.config_path}: {e}") from e
