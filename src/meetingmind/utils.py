import os
import time
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from .logger import log_warning

SCHEMA_PATH = Path(__file__).with_name("config_schema.yaml")

# User overrides (only the keys that differ from the schema defaults)
DEFAULT_CONFIG_PATH = os.environ.get(
    "MEETINGMIND_CONFIG",
    os.path.join(os.path.expanduser("~"), ".meetingmind", "config.yaml"),
)

# Schema type name -> accepted Python types
SCHEMA_TYPES = {
    'str': str,
    'int': int,
    'float': (int, float),
    'bool': bool,
}


def _is_leaf(item) -> bool:
    return isinstance(item, dict) and 'type' in item


def _walk(tree, keys):
    """Follow `keys` into nested dicts; returns (found, value)."""
    for key in keys:
        if not isinstance(tree, dict) or key not in tree:
            return False, None
        tree = tree[key]
    return True, tree


class ConfigManager:
    """
    Process-wide settings.

    Defaults come from the packaged YAML schema; a user YAML file overrides
    individual keys. Values that do not match the schema's type or options
    are replaced by the default with a warning.
    """
    _instance = None

    def __init__(self):
        self.config: Optional[Dict[str, Any]] = None
        self.schema: Optional[Dict[str, Any]] = None
        self.config_path = DEFAULT_CONFIG_PATH

    @classmethod
    def initialize(cls, schema_path=None, config_path=None):
        if cls._instance is not None:
            raise RuntimeError("ConfigManager is already initialized")
        manager = cls()
        if config_path:
            manager.config_path = str(config_path)
        manager.schema = manager.load_config_schema(schema_path)
        manager.config = manager.load_default_config()
        manager.load_user_config()
        cls._instance = manager

    @classmethod
    def reset(cls):
        """Forget the current instance (next access re-initializes)."""
        cls._instance = None

    @classmethod
    def get_instance(cls) -> 'ConfigManager':
        if cls._instance is None:
            cls.initialize()
        if cls._instance.config is None:  # type: ignore
            cls._instance.config = {}  # type: ignore
        return cls._instance  # type: ignore

    @classmethod
    def get_config_section(cls, *keys) -> dict:
        found, section = _walk(cls.get_instance().config, keys)
        return section if found and isinstance(section, dict) else {}

    @classmethod
    def get_config_value(cls, *keys):
        """e.g. get_config_value('session_options', 'question_word_threshold')"""
        found, value = _walk(cls.get_instance().config, keys)
        return value if found else None

    @classmethod
    def set_config_value(cls, value, *keys):
        """Set a nested value, creating intermediate sections as needed."""
        node = cls.get_instance().config
        for key in keys[:-1]:
            if not isinstance(node.get(key), dict):
                node[key] = {}
            node = node[key]
        node[keys[-1]] = value

    @staticmethod
    def load_config_schema(schema_path=None) -> dict:
        with open(schema_path or SCHEMA_PATH, 'r', encoding='utf-8') as file:
            return yaml.safe_load(file)

    def load_default_config(self) -> dict:
        """Strip the schema down to its default values."""
        def defaults(node):
            if _is_leaf(node):
                return node.get('value')
            if isinstance(node, dict):
                return {key: defaults(child) for key, child in node.items()}
            return node

        return defaults(self.schema or {})

    def _validate_config_value(self, value, schema_item, path) -> bool:
        if not _is_leaf(schema_item) or value is None:
            return True

        expected = schema_item['type']
        accepted = SCHEMA_TYPES.get(expected)
        if accepted is not None:
            # bool is an int subclass
            wrong_bool = isinstance(value, bool) and expected != 'bool'
            if wrong_bool or not isinstance(value, accepted):
                log_warning(f"[Config] '{path}' should be {expected}, got {type(value).__name__}. Using default.")
                return False

        options = schema_item.get('options')
        if options and value not in options:
            log_warning(f"[Config] '{path}' value '{value}' not in allowed options {options}. Using default.")
            return False

        return True

    def _validate_config_section(self, user_section, schema_section, path=""):
        """Reset invalid user values to their defaults, in place."""
        if not isinstance(user_section, dict) or not isinstance(schema_section, dict):
            return

        for key, schema_item in schema_section.items():
            if key not in user_section:
                continue
            item_path = f"{path}.{key}" if path else key
            if _is_leaf(schema_item):
                if not self._validate_config_value(user_section[key], schema_item, item_path):
                    user_section[key] = schema_item.get('value')
            else:
                self._validate_config_section(user_section[key], schema_item, item_path)

    @staticmethod
    def deep_update(source, overrides):
        """Merge `overrides` into `source`, recursing into nested sections."""
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(source.get(key), dict):
                ConfigManager.deep_update(source[key], value)
            else:
                source[key] = value

    def load_user_config(self, config_path=None):
        config_path = config_path or self.config_path
        if not config_path or not os.path.isfile(config_path):
            return

        try:
            with open(config_path, 'r', encoding='utf-8') as file:
                overrides = yaml.safe_load(file) or {}
        except yaml.YAMLError as e:
            log_warning(f"[Config] Could not parse {config_path}: {e}. Using default configuration.")
            return

        if not isinstance(overrides, dict):
            log_warning(f"[Config] {config_path} is not a mapping. Using default configuration.")
            return

        self._validate_config_section(overrides, self.schema)
        self.deep_update(self.config, overrides)

    @classmethod
    def save_config(cls, config_path=None, retries: int = 3):
        """Write the current settings atomically (temp file, then replace)."""
        manager = cls.get_instance()
        target = Path(config_path or manager.config_path)
        target.parent.mkdir(parents=True, exist_ok=True)
        staging = target.with_suffix('.tmp')

        with open(staging, 'w', encoding='utf-8') as file:
            yaml.safe_dump(manager.config, file, default_flow_style=False, sort_keys=False)
            file.flush()
            os.fsync(file.fileno())

        # Windows may briefly lock the target
        delay = 0.1
        for attempt in range(1, retries + 1):
            try:
                staging.replace(target)
                return
            except PermissionError as e:
                if attempt == retries:
                    staging.unlink(missing_ok=True)
                    raise RuntimeError(f"Failed to save config due to file lock: {e}") from e
                time.sleep(delay)
                delay *= 2
