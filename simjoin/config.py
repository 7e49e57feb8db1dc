"""Configuration management for simjoin."""

from pathlib import Path
from typing import Dict, Any, Optional
import yaml
from loguru import logger

from .errors import ConfigurationError


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    out = dict(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = _deep_update(out[k], v)
        else:
            out[k] = v
    return out


DEFAULT_CONFIG: Dict[str, Any] = {
    "join": {
        "strategy": "broadcast",   # "broadcast" | "naive"
        "weighted": False,
        "smaller_a": True,
        "containment": True,
    },
    "tokenizer": {
        "kind": "word",
        "lowercase": True,
    },
    "parallel": {
        "workers": 4,
        "partitions": 8,
        "show_progress": False,
    },
    "broadcast": {
        "max_entries": None,
    },
    "logging": {
        "log_dir": "logs",
        "log_file": "simjoin.log",
        "level": "INFO",
        "file_level": "DEBUG",
        "rotation": "10 MB",
        "retention": "7 days",
    },
}


class Config:
    """
    Configuration loader with validation and defaults.

    Loads from YAML, fills in defaults and provides convenient attribute access.
    """

    def __init__(self, config_path: str = "configs/base.yaml"):
        config_path = Path(config_path)

        if not config_path.exists():
            raise FileNotFoundError(f"Config file not found: {config_path}")

        logger.info(f"Loading config from {config_path}")

        with open(config_path, 'r') as f:
            loaded = yaml.safe_load(f) or {}

        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Config root must be a mapping: {config_path}")

        self.raw = _deep_update(DEFAULT_CONFIG, loaded)

        # Validate structure
        self._validate()

        # Create convenient accessors
        self.join = self.raw['join']
        self.featurizer = self.raw['featurizer']
        self.tokenizer = self.raw['tokenizer']
        self.parallel = self.raw['parallel']
        self.broadcast = self.raw['broadcast']
        self.paths = self.raw['paths']
        self.logging = self.raw['logging']

        logger.info(f"✓ Config loaded (measure: {self.featurizer['measure']}, strategy: {self.join['strategy']})")

    def _validate(self):
        """Validate required config sections exist."""
        required = [
            'featurizer',
            'paths',
        ]

        missing = [key for key in required if key not in self.raw]

        if missing:
            raise ConfigurationError(
                f"Missing required config sections: {missing}\n"
                f"Check your configs/base.yaml file"
            )

        for key in ['measure', 'threshold', 'columns']:
            if key not in self.raw['featurizer']:
                raise ConfigurationError(f"featurizer.{key} missing")

        for key in ['input_a', 'output']:
            if key not in self.raw['paths']:
                raise ConfigurationError(f"paths.{key} missing")

        strategy = self.raw['join'].get('strategy')
        if strategy not in ('broadcast', 'naive'):
            raise ConfigurationError(f"join.strategy must be 'broadcast' or 'naive', got {strategy!r}")

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get config value with dot notation support.

        Examples:
            cfg.get('featurizer.threshold', 0.8)
            cfg.get('parallel.workers', 4)
        """
        keys = key.split('.')
        value = self.raw

        try:
            for k in keys:
                value = value[k]
            return value
        except (KeyError, TypeError):
            return default

    def __getitem__(self, key: str) -> Any:
        """Support dict-like access: cfg['join']"""
        return self.raw[key]

    def __repr__(self) -> str:
        return f"Config(measure={self.featurizer['measure']}, strategy={self.join['strategy']})"


def validate_paths(config: Config) -> bool:
    """
    Check inputs exist and create output directories.

    Args:
        config: Loaded configuration

    Returns:
        True if validation passes
    """
    inputs = [config.paths['input_a']]
    if config.paths.get('input_b'):
        inputs.append(config.paths['input_b'])

    for path in inputs:
        if not Path(path).exists():
            logger.error(f"Input file not found: {path}")
            return False

    Path(config.paths['output']).parent.mkdir(parents=True, exist_ok=True)
    Path(config.logging['log_dir']).mkdir(parents=True, exist_ok=True)

    return True


def load_config(config_path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML file.

    Args:
        config_path: Path to config file (defaults to configs/base.yaml)

    Returns:
        Config object
    """
    return Config(config_path or "configs/base.yaml")
