"""Configuration persistence manager for the paint-by-number converter.

This module handles loading and saving of the last-used conversion settings
to/from JSON files.
"""

import json
from dataclasses import asdict, fields
from enum import Enum
from pathlib import Path
from typing import Optional, Tuple

from .errors import ConfigError
from .models import CONFIG_FILE, ConversionConfig


class ConfigManager:
    """Handles loading and saving of conversion configuration."""

    def __init__(self, config_path: Path = CONFIG_FILE):
        """Initialize config manager.

        Args:
            config_path: Path to configuration file (defaults to ~/.paint_by_number_config.json)
        """
        self.config_path = Path(config_path)

    def load(self) -> ConversionConfig:
        """Load configuration from file, returning defaults if not found.

        Returns:
            ConversionConfig with loaded or default values
        """
        config = ConversionConfig()

        try:
            if self.config_path.exists():
                with open(self.config_path, "r") as f:
                    data = json.load(f)
                # Update config with loaded values (fallback to defaults)
                values = {
                    field.name: data.get(field.name, getattr(config, field.name))
                    for field in fields(ConversionConfig)
                }
                config = ConversionConfig(**values).validate()
                print(f"✓ Loaded configuration from {self.config_path}")
        except (OSError, ValueError, TypeError, AttributeError) as e:
            # ConfigError and json.JSONDecodeError are both ValueErrors
            print(f"Warning: Could not load config file: {e}")
            config = ConversionConfig()

        return config

    def save(self, config: ConversionConfig) -> Tuple[bool, Optional[str]]:
        """Save configuration to file.

        Args:
            config: ConversionConfig to save

        Returns:
            Tuple of (success: bool, error_message: Optional[str])
        """
        try:
            config = config.validate()
            data = {
                key: value.value if isinstance(value, Enum) else value
                for key, value in asdict(config).items()
            }
            with open(self.config_path, "w") as f:
                json.dump(data, f, indent=2)
            return True, None
        except (OSError, ConfigError) as e:
            return False, str(e)
