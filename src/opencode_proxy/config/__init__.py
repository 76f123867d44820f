"""
Configuration du proxy.
"""

from .loader import load_config, reload_config, save_config, get_config_path
from .settings import ProxyConfig, normalize_auth_type

__all__ = [
    "load_config",
    "reload_config",
    "save_config",
    "get_config_path",
    "ProxyConfig",
    "normalize_auth_type",
]
