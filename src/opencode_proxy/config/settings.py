"""
Dataclass pour la configuration du proxy.
"""
import logging
from dataclasses import dataclass, asdict
from typing import Dict, Any
from urllib.parse import urlparse

from ..core.constants import (
    AUTH_TYPE_APIKEY,
    AUTH_TYPE_TOKEN_FILE,
    AUTH_TYPE_LEGACY_ALIASES,
    DEFAULT_TARGET,
    DEFAULT_LOGIN_URL,
    DEFAULT_AUTH_FILE,
)
from ..core.exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _as_bool(data: Dict[str, Any], key: str, default: bool) -> bool:
    """Booléen JSON strict: toute autre valeur laisse le défaut en place."""
    value = data.get(key, default)
    if isinstance(value, bool):
        return value
    logger.warning("⚠️ %s: booléen attendu, reçu %r (défaut %s conservé)", key, value, default)
    return default


def normalize_auth_type(value: str) -> str:
    """Ramène les anciens noms ('opencode') au nom courant ('token-file')."""
    value = (value or "").strip().lower()
    return AUTH_TYPE_LEGACY_ALIASES.get(value, value)


@dataclass(frozen=True)
class ProxyConfig:
    """Configuration figée pour toute la durée du process."""
    target: str = DEFAULT_TARGET
    auth_type: str = AUTH_TYPE_TOKEN_FILE
    api_key: str = DEFAULT_AUTH_FILE  # Clé littérale (apikey) ou chemin du fichier de tokens
    login_url: str = DEFAULT_LOGIN_URL  # Clé de recherche dans le fichier de tokens
    cf_access: bool = True
    cf_client_id: str = ""
    cf_client_secret: str = ""
    proxy: str = ""
    ca_cert: str = ""
    insecure_skip_verify: bool = False

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProxyConfig":
        """Crée une instance depuis un dictionnaire (clés absentes = défauts)."""
        defaults = cls()
        return cls(
            target=str(data.get("target", defaults.target)),
            auth_type=normalize_auth_type(data.get("auth_type", defaults.auth_type)),
            api_key=str(data.get("api_key", defaults.api_key)),
            login_url=str(data.get("login_url", defaults.login_url)),
            cf_access=_as_bool(data, "cf_access", defaults.cf_access),
            cf_client_id=str(data.get("cf_client_id") or ""),
            cf_client_secret=str(data.get("cf_client_secret") or ""),
            proxy=str(data.get("proxy") or ""),
            ca_cert=str(data.get("ca_cert") or ""),
            insecure_skip_verify=_as_bool(data, "insecure_skip_verify", defaults.insecure_skip_verify)
        )

    def to_dict(self) -> Dict[str, Any]:
        """Sérialise pour config.json (les champs réseau vides sont omis)."""
        data = asdict(self)
        for key in ("proxy", "ca_cert"):
            if not data[key]:
                del data[key]
        if not data["insecure_skip_verify"]:
            del data["insecure_skip_verify"]
        return data

    def validate(self) -> "ProxyConfig":
        """
        Vérifie les invariants de démarrage.

        Raises:
            ConfigurationError: URL cible non absolue ou auth_type inconnu
        """
        parsed = urlparse(self.target)
        if parsed.scheme not in ("http", "https") or not parsed.netloc:
            raise ConfigurationError(
                message=f"URL cible invalide (absolue http/https attendue): {self.target!r}",
                config_key="target"
            )
        if self.auth_type not in (AUTH_TYPE_APIKEY, AUTH_TYPE_TOKEN_FILE):
            raise ConfigurationError(
                message=f"auth_type inconnu: {self.auth_type!r}",
                config_key="auth_type"
            )
        return self

    @property
    def upstream_base(self) -> str:
        return self.target.rstrip("/")
