from .config import Settings, settings
from .paths import get_config_env, get_config_root, resolve_config_path
from .runtime_config import RuntimeConfig, load_runtime_config, runtime_config

__all__ = [
    "RuntimeConfig",
    "Settings",
    "get_config_env",
    "get_config_root",
    "load_runtime_config",
    "resolve_config_path",
    "runtime_config",
    "settings",
]
