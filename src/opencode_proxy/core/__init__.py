"""
Cœur du proxy: exceptions, constantes, contexte process et journalisation.
"""

from .exceptions import (
    ProxyError,
    ConfigurationError,
    MalformedRequestBodyError,
    CredentialError,
    UpstreamUnavailableError,
    RelayWriteFailure,
    FlushNotSupportedError,
)
from .constants import (
    ANTHROPIC_VERSION,
    UPSTREAM_TIMEOUT,
    DEFAULT_PORT,
    DEFAULT_BIND,
)
from .lifecycle import LifecycleLogger, configure_logging, resolve_log_level

__all__ = [
    # Exceptions
    "ProxyError",
    "ConfigurationError",
    "MalformedRequestBodyError",
    "CredentialError",
    "UpstreamUnavailableError",
    "RelayWriteFailure",
    "FlushNotSupportedError",
    # Constantes
    "ANTHROPIC_VERSION",
    "UPSTREAM_TIMEOUT",
    "DEFAULT_PORT",
    "DEFAULT_BIND",
    # Logging
    "LifecycleLogger",
    "configure_logging",
    "resolve_log_level",
]
