"""Runtime configuration: TOML file, ``REFBIND_`` environment, explicit overrides."""

from refbind.config.loader import (
    DEFAULT_CONFIG_FILE,
    ENV_PREFIX,
    ConfigLoadError,
    dump_effective_config,
    load_config,
    load_config_file,
    normalize_paths,
)
from refbind.config.schema import (
    DEFAULT_CONFIG,
    ConfigSchemaVersion,
    ConfigValidationError,
    ConfigValidationIssue,
    ConfigValidationResult,
    RefbindConfig,
    assert_valid_config,
    default_config,
    merge_config,
    validate_config,
)

__all__ = [
    "DEFAULT_CONFIG",
    "DEFAULT_CONFIG_FILE",
    "ENV_PREFIX",
    "ConfigLoadError",
    "ConfigSchemaVersion",
    "ConfigValidationError",
    "ConfigValidationIssue",
    "ConfigValidationResult",
    "RefbindConfig",
    "assert_valid_config",
    "default_config",
    "dump_effective_config",
    "load_config",
    "load_config_file",
    "merge_config",
    "normalize_paths",
    "validate_config",
]
