"""
Résolution du token et choix des headers d'authentification.

Le token est relu à chaque requête: le fichier peut changer entre deux
appels (nouveau login), donc rien n'est mis en cache.
"""
import json
import os
from dataclasses import dataclass
from typing import Dict

from ..config.settings import ProxyConfig
from ..core.constants import (
    AUTH_TYPE_APIKEY,
    CREDENTIAL_KIND_APIKEY,
    CREDENTIAL_KIND_BEARER,
    HEADER_API_KEY,
    HEADER_AUTHORIZATION,
    HEADER_CF_ACCESS_TOKEN,
    HEADER_CF_CLIENT_ID,
    HEADER_CF_CLIENT_SECRET,
)
from ..core.exceptions import CredentialError


@dataclass(frozen=True)
class ResolvedCredential:
    """Token + nature (clé API littérale ou token bearer)."""
    token: str
    kind: str

    @property
    def is_apikey(self) -> bool:
        return self.kind == CREDENTIAL_KIND_APIKEY


def get_token(config: ProxyConfig) -> ResolvedCredential:
    """
    Résout le credential configuré.

    Args:
        config: Configuration du proxy

    Returns:
        ResolvedCredential non vide

    Raises:
        CredentialError: Fichier illisible/malformé, entrée absente ou token vide
    """
    if config.auth_type == AUTH_TYPE_APIKEY:
        if not config.api_key:
            raise CredentialError("Clé API vide", auth_type=config.auth_type)
        return ResolvedCredential(token=config.api_key, kind=CREDENTIAL_KIND_APIKEY)

    token = _read_token_file(os.path.expanduser(config.api_key), config.login_url)
    if not token:
        raise CredentialError(
            f"Token vide pour {config.login_url}", auth_type=config.auth_type
        )
    return ResolvedCredential(token=token, kind=CREDENTIAL_KIND_BEARER)


def _read_token_file(path: str, login_url: str) -> str:
    """Lit `{login_url: {"token": ...}}` dans le fichier d'auth."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            auth_map = json.load(f)
    except OSError as e:
        raise CredentialError(f"Lecture du fichier d'auth impossible: {e}") from e
    except ValueError as e:
        raise CredentialError(f"Fichier d'auth malformé: {e}") from e

    if not isinstance(auth_map, dict):
        raise CredentialError("Fichier d'auth malformé: objet JSON attendu")

    entry = auth_map.get(login_url)
    if entry is None:
        raise CredentialError(f"Aucun token pour {login_url}")
    if not isinstance(entry, dict) or not isinstance(entry.get("token", ""), str):
        raise CredentialError(f"Entrée malformée pour {login_url}")

    return entry.get("token", "")


def build_auth_headers(
    cf_access: bool,
    cf_client_id: str,
    cf_client_secret: str,
    credential: ResolvedCredential
) -> Dict[str, str]:
    """
    Choisit le schéma d'authentification. Un seul s'applique:

    1. gateway CF Access: token dans `cf-access-token` (+ id/secret si les deux sont fournis)
    2. clé API: `x-api-key`
    3. sinon: `Authorization: Bearer`
    """
    if cf_access:
        headers = {HEADER_CF_ACCESS_TOKEN: credential.token}
        if cf_client_id and cf_client_secret:
            headers[HEADER_CF_CLIENT_ID] = cf_client_id
            headers[HEADER_CF_CLIENT_SECRET] = cf_client_secret
        return headers

    if credential.is_apikey:
        return {HEADER_API_KEY: credential.token}

    return {HEADER_AUTHORIZATION: f"Bearer {credential.token}"}


def auth_headers_for(config: ProxyConfig, credential: ResolvedCredential) -> Dict[str, str]:
    """Raccourci: headers d'auth pour une config donnée."""
    return build_auth_headers(
        config.cf_access,
        config.cf_client_id,
        config.cf_client_secret,
        credential
    )
