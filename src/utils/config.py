# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for Chartor with environment support.
"""

import os
import json
from pathlib import Path
from typing import Dict, Any, Optional


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    """
    Configuration class for the chart pipeline and its HTTP service.
    Supports environment variables and default values.
    """

    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.

        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Data sources
        self.DATA_DIR = os.getenv('CHARTOR_DATA_DIR', 'public/data')
        self.BASE_URL = os.getenv('CHARTOR_BASE_URL', '')
        self.FETCH_TIMEOUT = float(os.getenv('CHARTOR_FETCH_TIMEOUT', '30'))

        # Reserved files are served but never charted
        self.RESERVED_FILE_MARKER = os.getenv('CHARTOR_RESERVED_MARKER', 'laposte')
        self.POSTAL_CODE_FILE = os.getenv('CHARTOR_POSTAL_CODE_FILE', 'laposte_hexasmal.csv')

        # Cleaning rules
        self.SELECTION_MARKER = os.getenv('CHARTOR_SELECTION_MARKER', '')
        self.SELECTION_FIELDS = [
            field.strip()
            for field in os.getenv('CHARTOR_SELECTION_FIELDS', 'tags').split(',')
            if field.strip()
        ]
        self.STATS_DELIMITER = os.getenv('CHARTOR_STATS_DELIMITER', ';')

        # Aggregation
        self.DROP_EMPTY_CITY = _env_flag('CHARTOR_DROP_EMPTY_CITY', 'true')
        self.ENABLE_DEPARTMENT_AGGREGATION = _env_flag('CHARTOR_ENABLE_DEPARTMENTS', 'false')

        # Server
        self.SERVER_HOST = os.getenv('CHARTOR_HOST', '0.0.0.0')
        self.SERVER_PORT = int(os.getenv('CHARTOR_PORT', '3000'))

        # Outputs
        self.OUTPUT_DIR = os.getenv('CHARTOR_OUTPUT_DIR', 'data/processed')

        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_DIR = os.getenv('CHARTOR_LOG_DIR', 'logs')

        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)

    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Update configuration from dictionary."""
        for key, value in config_dict.items():
            if hasattr(self, key.upper()):
                setattr(self, key.upper(), value)

    def get_data_paths(self) -> Dict[str, Path]:
        """Get all configured data paths as Path objects."""
        return {
            'data_dir': Path(self.DATA_DIR),
            'output_dir': Path(self.OUTPUT_DIR),
            'logs_dir': Path(self.LOG_DIR),
        }

    def ensure_directories(self) -> None:
        """Create output directories if they don't exist."""
        paths = self.get_data_paths()
        for path_name in ('output_dir', 'logs_dir'):
            paths[path_name].mkdir(parents=True, exist_ok=True)

    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.

        Returns:
            dict: Validation results for each setting
        """
        validations = {}

        validations['fetch_timeout'] = self.FETCH_TIMEOUT > 0
        validations['server_port'] = 1 <= self.SERVER_PORT <= 65535
        validations['stats_delimiter'] = len(self.STATS_DELIMITER) == 1 and self.STATS_DELIMITER != ':'
        validations['reserved_marker'] = bool(self.RESERVED_FILE_MARKER)
        validations['base_url'] = (
            not self.BASE_URL or self.BASE_URL.startswith(('http://', 'https://'))
        )

        # Validate log level
        valid_log_levels = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']
        validations['log_level'] = self.LOG_LEVEL.upper() in valid_log_levels

        return validations

    def to_dict(self) -> Dict[str, Any]:
        """Convert configuration to dictionary."""
        return {
            attr: getattr(self, attr)
            for attr in dir(self)
            if not attr.startswith('_') and not callable(getattr(self, attr))
        }

    def save_to_file(self, file_path: str) -> None:
        """Save configuration to JSON file."""
        with open(file_path, "w", encoding="utf-8") as f:
            json.dump(self.to_dict(), f, indent=2, default=str)

    @classmethod
    def load_from_file(cls, file_path: str,
                       overrides: Optional[Dict[str, Any]] = None) -> 'Config':
        """Load configuration from JSON file; overrides win over the file."""
        with open(file_path, "r", encoding="utf-8") as f:
            payload = json.load(f)
        if not isinstance(payload, dict):
            raise ValueError(f"Configuration file {file_path} must hold a JSON object")
        config_dict = {key.upper(): value for key, value in payload.items()}
        config_dict.update({key.upper(): value for key, value in (overrides or {}).items()})
        return cls(config_dict)

