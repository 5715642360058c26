"""Configuration loader: YAML files, ${ENV} substitution, defaults and validation."""

import copy
import os
import re
from typing import Any, Callable, Dict, List, Tuple
from urllib.parse import urlparse

import yaml

# Drive requires resumable upload chunks in multiples of 256 KiB
CHUNK_GRANULARITY = 256 * 1024

DEFAULT_CONFIG: Dict[str, Any] = {
    'drive': {
        'api_url': 'https://www.googleapis.com/drive/v3',
        'upload_url': 'https://www.googleapis.com/upload/drive/v3',
        'root_folder_name': 'MigratedContent',
        'chunk_size': 32 * CHUNK_GRANULARITY,
    },
    'auth': {},
    'job_store': {'directory': './.job-store'},
    'import': {
        'max_workers': 1,
        'continue_on_file_error': False,
        'show_progress': True,
    },
    'advanced': {
        'verify_ssl': True,
        'request_timeout': 30,
        'max_retries': 3,
        'retry_backoff_factor': 0.5,
        'rate_limit': 0.0,
    },
    'logging': {},
}

LOG_LEVELS = ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL')


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _is_http_url(value: Any) -> bool:
    parsed = urlparse(value) if isinstance(value, str) else None
    return bool(parsed and parsed.scheme in ('http', 'https') and parsed.netloc)


# (path, check, message); a rule only runs when the key is set
VALIDATION_RULES: List[Tuple[str, Callable[[Any], bool], str]] = [
    ('drive.api_url', _is_http_url, "must be an http(s) URL with a hostname"),
    ('drive.upload_url', _is_http_url, "must be an http(s) URL with a hostname"),
    ('drive.root_folder_name', lambda v: isinstance(v, str) and bool(v.strip()),
     "must be a non-empty string"),
    ('drive.chunk_size', lambda v: _is_int(v) and v > 0 and v % CHUNK_GRANULARITY == 0,
     f"must be a positive multiple of {CHUNK_GRANULARITY}"),
    ('auth.token_url', _is_http_url, "must be an http(s) URL with a hostname"),
    ('job_store.directory', lambda v: isinstance(v, str) and not os.path.isfile(v),
     "must be a directory path"),
    ('import.max_workers', lambda v: _is_int(v) and v >= 1, "must be a positive integer"),
    ('import.continue_on_file_error', lambda v: isinstance(v, bool), "must be a boolean"),
    ('import.show_progress', lambda v: isinstance(v, bool), "must be a boolean"),
    ('advanced.verify_ssl', lambda v: isinstance(v, bool), "must be a boolean"),
    ('advanced.request_timeout', lambda v: _is_number(v) and v > 0, "must be a positive number"),
    ('advanced.max_retries', lambda v: _is_int(v) and v >= 0, "must be a non-negative integer"),
    ('advanced.retry_backoff_factor', lambda v: _is_number(v) and v >= 0,
     "must be a non-negative number"),
    ('advanced.rate_limit', lambda v: _is_number(v) and v >= 0, "must be a non-negative number"),
    ('logging.level', lambda v: isinstance(v, str) and v.upper() in LOG_LEVELS,
     f"must be one of {', '.join(LOG_LEVELS)}"),
]


class ConfigLoader:
    """Loads, completes and checks importer configuration."""

    ENV_VAR_PATTERN = re.compile(r'\$\{([A-Za-z_][A-Za-z0-9_]*)\}')

    @classmethod
    def load(cls, config_path: str) -> Dict[str, Any]:
        """
        Read a YAML config file and resolve ${VAR} references.

        Unset variables are left as written so validation can name them.

        Raises:
            FileNotFoundError: If the file does not exist
            ValueError: If the file is not a mapping
            yaml.YAMLError: If the YAML is malformed
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'r', encoding='utf-8') as f:
            data = yaml.safe_load(f)

        if not isinstance(data, dict):
            raise ValueError("Configuration file must contain a mapping")

        return cls.substitute_env_vars(data)

    @classmethod
    def substitute_env_vars(cls, data: Any) -> Any:
        """Replace ${VAR} in every string of a nested structure."""
        if isinstance(data, dict):
            return {key: cls.substitute_env_vars(value) for key, value in data.items()}
        if isinstance(data, list):
            return [cls.substitute_env_vars(item) for item in data]
        if isinstance(data, str):
            return cls.ENV_VAR_PATTERN.sub(
                lambda m: os.environ.get(m.group(1), m.group(0)), data
            )
        return data

    @staticmethod
    def with_defaults(config: Dict[str, Any]) -> Dict[str, Any]:
        """Return a copy of ``config`` with every section filled from DEFAULT_CONFIG."""
        merged = copy.deepcopy(DEFAULT_CONFIG)
        for section, values in (config or {}).items():
            if isinstance(values, dict) and isinstance(merged.get(section), dict):
                merged[section].update(copy.deepcopy(values))
            else:
                merged[section] = copy.deepcopy(values)
        return merged

    @classmethod
    def validate(cls, config: Dict[str, Any]) -> None:
        """
        Check required keys and value types.

        Raises:
            ValueError: Naming the first offending key
        """
        token = get_nested(config, 'auth.access_token')
        if token is None or token == '':
            raise ValueError("Missing required configuration: auth.access_token")

        for path, value in _iter_strings(config):
            match = cls.ENV_VAR_PATTERN.search(value)
            if match:
                raise ValueError(
                    f"Configuration field '{path}' contains unsubstituted environment variable: {value}. "
                    f"Set {match.group(1)} or provide a value in the config file."
                )

        for path, check, message in VALIDATION_RULES:
            value = get_nested(config, path)
            if value is not None and not check(value):
                raise ValueError(f"{path} {message} (got {value!r})")

    @classmethod
    def merge_with_args(cls, config: Dict[str, Any], args) -> Dict[str, Any]:
        """
        Apply CLI overrides on top of the file configuration.

        Args:
            config: Configuration loaded from file
            args: argparse namespace from migrate.py

        Returns:
            New configuration dictionary; ``config`` is left untouched
        """
        merged = copy.deepcopy(config)

        overrides = [
            ('auth', 'access_token', getattr(args, 'access_token', None)),
            ('import', 'max_workers', getattr(args, 'workers', None)),
            ('import', 'continue_on_file_error', True if getattr(args, 'continue_on_file_error', False) else None),
            ('import', 'show_progress', False if getattr(args, 'no_progress', False) else None),
            ('logging', 'file', getattr(args, 'log_file', None)),
        ]

        for section, key, value in overrides:
            if not isinstance(merged.get(section), dict):
                merged[section] = {}
            if value is not None:
                merged[section][key] = value

        return merged


def _iter_strings(data: Any, prefix: str = ''):
    """Yield (dotted path, value) for every string leaf."""
    if isinstance(data, dict):
        for key, value in data.items():
            yield from _iter_strings(value, f"{prefix}.{key}" if prefix else str(key))
    elif isinstance(data, str):
        yield prefix, data


def get_nested(config: dict, path: str, default: Any = None) -> Any:
    """Look up a dotted path such as ``"drive.api_url"``; ``default`` if any part is missing."""
    value = config
    for key in path.split('.'):
        if not isinstance(value, dict) or key not in value:
            return default
        value = value[key]
    return value


__all__ = ['ConfigLoader', 'get_nested', 'DEFAULT_CONFIG']
