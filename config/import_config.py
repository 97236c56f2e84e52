"""
Import configuration

Connection settings and pipeline tunables for vcf_import.py. Defaults can be
overridden by a JSON configuration file, which is in turn overridden by
command line flags.

EXAMPLE CONFIG FILE (config.json):
{
    "database": {
        "address": "localhost",
        "port": 27017,
        "db": "VCF"
    },
    "import": {
        "chunk_size": 500,
        "merger_threads": 2,
        "loader_threads": 2,
        "parser_buffer_size": 1000,
        "merger_buffer_size": 1000,
        "loader_buffer_size": 1000,
        "drop_bad_records": false
    }
}
"""

import json
from dataclasses import dataclass, fields, replace
from pathlib import Path

from utils.errors import ErrorKind, VCFDBError


# Tunables that must be positive integers
POSITIVE_INT_OPTIONS = [
    'chunk_size',
    'merger_threads',
    'loader_threads',
    'parser_buffer_size',
    'merger_buffer_size',
    'loader_buffer_size',
]


@dataclass
class ImportOptions:
    """Settings for one import run."""
    address: str = 'localhost'
    port: int = 27017
    db: str = 'VCF'
    append: bool = False
    no_progress: bool = False
    drop_bad_records: bool = False
    chunk_size: int = 500
    merger_threads: int = 1
    loader_threads: int = 2
    parser_buffer_size: int = 1000
    merger_buffer_size: int = 1000
    loader_buffer_size: int = 1000
    poll_interval: float = 0.2

    def validate(self):
        """Raise a CONFIGURATION error for out-of-range tunables"""
        for name in POSITIVE_INT_OPTIONS:
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value < 1:
                raise VCFDBError(ErrorKind.CONFIGURATION, f"{name.replace('_', '-')} must be a value >= 1.")
        if self.poll_interval <= 0:
            raise VCFDBError(ErrorKind.CONFIGURATION, "poll-interval must be a positive number of seconds.")
        return self

    def with_overrides(self, **overrides):
        """Return a copy with every non-None override applied"""
        known = {f.name for f in fields(self)}
        unknown = set(overrides) - known
        if unknown:
            raise VCFDBError(ErrorKind.CONFIGURATION, f"Unknown import options: {sorted(unknown)}")
        return replace(self, **{k: v for k, v in overrides.items() if v is not None})


def load_config(config_path):
    """Load and validate a JSON configuration file"""
    if not Path(config_path).exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    try:
        with open(config_path, 'r') as f:
            config = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(f"Invalid JSON in configuration file: {e}")

    if not isinstance(config, dict):
        raise ValueError("Configuration file must contain a JSON object")

    for section in ['database', 'import']:
        if section in config and not isinstance(config[section], dict):
            raise ValueError(f"Configuration section '{section}' must be an object")

    return config


def options_from_config(config, base=None):
    """Merge the 'database' and 'import' sections of a loaded config over the defaults"""
    options = base if base is not None else ImportOptions()
    overrides = {}
    overrides.update(config.get('database', {}))
    overrides.update(config.get('import', {}))
    return options.with_overrides(**overrides)
