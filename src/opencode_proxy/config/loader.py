"""src.opencode_proxy.config.loader

Chargement et sauvegarde de la configuration JSON.

Le fichier est lu une seule fois par process: la configuration est figée
au démarrage du serveur et n'est jamais rechargée à chaud.
"""
import json
import os
import re
from pathlib import Path
from typing import Dict, Any, Optional, Tuple

from ..core.constants import CONFIG_FILE, CONFIG_ENV_VAR
from ..core.exceptions import ConfigurationError
from .settings import ProxyConfig

# Cache global de configuration: (chemin, config)
_config_cache: Optional[Tuple[str, ProxyConfig]] = None

_ENV_VAR_PATTERN = re.compile(r'\$\{([^}]+)\}')


def _expand_env_vars(obj: Any) -> Any:
    """
    Récursivement étend les variables d'environnement ${VAR} dans la config.

    Args:
        obj: Valeur à traiter (str, dict, list)

    Returns:
        Valeur avec variables d'environnement expansées
    """
    if isinstance(obj, str):
        def replace_env_var(match):
            var_name = match.group(1)
            return os.environ.get(var_name, match.group(0))
        return _ENV_VAR_PATTERN.sub(replace_env_var, obj)
    elif isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _clear_config_cache():
    """Vide le cache de configuration."""
    global _config_cache
    _config_cache = None


def get_config_path(config_path: str = None) -> str:
    """Chemin effectif: argument, puis variable d'environnement, puis défaut."""
    if config_path:
        return config_path
    return os.environ.get(CONFIG_ENV_VAR) or CONFIG_FILE


def read_config_file(config_path: str) -> Dict[str, Any]:
    """
    Lit le JSON brut du fichier de configuration.

    Returns:
        Dictionnaire (vide si le fichier n'existe pas)

    Raises:
        ConfigurationError: Si le fichier existe mais n'est pas un objet JSON valide
    """
    path = Path(config_path)
    if not path.exists():
        return {}

    try:
        with open(path, "r", encoding="utf-8") as f:
            raw_config = json.load(f)
    except (OSError, ValueError) as e:
        raise ConfigurationError(
            message=f"Fichier de configuration illisible: {config_path} ({e})",
            config_key="config_path"
        ) from e

    if not isinstance(raw_config, dict):
        raise ConfigurationError(
            message=f"La configuration doit être un objet JSON: {config_path}",
            config_key="config_path"
        )
    return raw_config


def load_config(config_path: str = None) -> ProxyConfig:
    """
    Charge la configuration, les valeurs absentes prenant leurs défauts.

    Args:
        config_path: Chemin vers le fichier config (optionnel)

    Returns:
        ProxyConfig figée

    Raises:
        ConfigurationError: Si le fichier existe mais est invalide
    """
    global _config_cache

    path = get_config_path(config_path)
    if _config_cache is not None and _config_cache[0] == path:
        return _config_cache[1]

    raw_config = _expand_env_vars(read_config_file(path))
    config = ProxyConfig.from_dict(raw_config)
    _config_cache = (path, config)
    return config


def reload_config(config_path: str = None) -> ProxyConfig:
    """
    Relit la configuration depuis le disque (utilisé par la CLI après écriture).

    Returns:
        Nouvelle configuration chargée
    """
    _clear_config_cache()
    return load_config(config_path)


def save_config(config: ProxyConfig, config_path: str = None) -> str:
    """
    Écrit la configuration en JSON indenté.

    Returns:
        Chemin du fichier écrit
    """
    path = Path(get_config_path(config_path))
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        json.dump(config.to_dict(), f, indent=2)
        f.write("\n")
    _clear_config_cache()
    return str(path)
