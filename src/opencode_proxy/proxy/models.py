"""
Liste des modèles exposés par l'upstream (`GET /v1/models`).

Utilisé par la commande CLI `models`. Même politique d'auth que le proxy,
sauf avec `--source anthropic` où l'API Anthropic est interrogée en direct
(pas de CF Access).
"""
import json
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

import httpx

from ..config.settings import ProxyConfig
from ..core.constants import ANTHROPIC_API_URL, ANTHROPIC_VERSION
from ..core.exceptions import UpstreamUnavailableError
from .auth import ResolvedCredential, auth_headers_for, build_auth_headers, get_token
from .client import create_http_client

logger = logging.getLogger(__name__)

MODELS_TIMEOUT = 30.0
DIRECT_SOURCES = ("anthropic", "direct")

FAMILY_ORDER = ("claude-3-5", "claude-3", "claude-2", "other")
FAMILY_NAMES = {
    "claude-3-5": "Claude 3.5",
    "claude-3": "Claude 3",
    "claude-2": "Claude 2",
    "other": "Other",
}

# Affiché quand la cible ne connaît pas /v1/models
STATIC_MODELS = (
    ("Claude 3.5", ("claude-3-5-sonnet-20241022 (latest)", "claude-3-5-sonnet-20240620", "claude-3-5-haiku-20241022")),
    ("Claude 3", ("claude-3-opus-20240229", "claude-3-sonnet-20240229", "claude-3-haiku-20240307")),
    ("Claude 4", ("claude-sonnet-4-20250514", "claude-opus-4-20250514")),
)


def models_url(config: ProxyConfig, source: str = "") -> Tuple[str, bool]:
    """
    URL de l'endpoint models selon la source demandée.

    Returns:
        (url, direct): direct=True pour l'API Anthropic sans gateway
    """
    if source in DIRECT_SOURCES:
        return f"{ANTHROPIC_API_URL}/v1/models", True
    base = source.rstrip("/") if source else config.upstream_base
    return f"{base}/v1/models", False


def models_headers(config: ProxyConfig, credential: ResolvedCredential, direct: bool) -> Dict[str, str]:
    """Headers de la requête models: CF Access seulement via la cible configurée."""
    if direct:
        auth = build_auth_headers(False, "", "", credential)
    else:
        auth = auth_headers_for(config, credential)
    return {
        "Content-Type": "application/json",
        "anthropic-version": ANTHROPIC_VERSION,
        **auth,
    }


async def fetch_models(
    config: ProxyConfig,
    source: str = "",
    client: Optional[httpx.AsyncClient] = None
) -> Optional[Dict[str, Any]]:
    """
    Interroge `GET /v1/models`.

    Args:
        config: Configuration du proxy
        source: "" (cible configurée), "anthropic" ou une URL de base
        client: Client httpx déjà construit (tests)

    Returns:
        La réponse JSON, ou None si la cible configurée ne supporte pas
        l'endpoint (404)

    Raises:
        CredentialError: Token introuvable
        UpstreamUnavailableError: Transport en échec, statut != 200 ou JSON illisible
    """
    url, direct = models_url(config, source)
    headers = models_headers(config, get_token(config), direct)

    owned = client is None
    http = client or create_http_client(config, timeout=MODELS_TIMEOUT)
    try:
        response = await http.get(url, headers=headers)
    except httpx.HTTPError as e:
        raise UpstreamUnavailableError(str(e) or type(e).__name__, url=url) from e
    finally:
        if owned:
            await http.aclose()

    if response.status_code == 404 and not source:
        logger.debug("La cible ne supporte pas /v1/models: %s", url)
        return None
    if response.status_code != 200:
        raise UpstreamUnavailableError(f"API error ({response.status_code}): {response.text}", url=url)

    try:
        data = response.json()
    except ValueError as e:
        raise UpstreamUnavailableError(f"Réponse models illisible: {e}", url=url) from e
    if not isinstance(data, dict):
        raise UpstreamUnavailableError("Réponse models illisible: objet JSON attendu", url=url)
    return data


def model_family(model_id: str) -> str:
    if "claude-3-5" in model_id or "claude-3.5" in model_id:
        return "claude-3-5"
    if "claude-3" in model_id:
        return "claude-3"
    if "claude-2" in model_id:
        return "claude-2"
    return "other"


def _created_label(created_at: str) -> str:
    if not created_at:
        return ""
    try:
        created = datetime.fromisoformat(created_at.replace("Z", "+00:00"))
    except ValueError:
        return ""
    return f" ({created.strftime('%b %Y')})"


def format_models(listing: Dict[str, Any], target: str) -> List[str]:
    """Lignes d'affichage: modèles triés par id et groupés par famille."""
    models = [m for m in listing.get("data") or [] if isinstance(m, dict) and m.get("id")]
    models.sort(key=lambda m: m["id"])

    families: Dict[str, List[Dict[str, Any]]] = {}
    for model in models:
        families.setdefault(model_family(model["id"]), []).append(model)

    lines = [f"Available models from {target}:", ""]
    for family in FAMILY_ORDER:
        if family not in families:
            continue
        lines.append(f"  {FAMILY_NAMES[family]}:")
        for model in families[family]:
            name = model.get("display_name") or model["id"]
            lines.append(f"    • {name}{_created_label(model.get('created_at') or '')}")
        lines.append("")
    lines.append(f"Total: {len(models)} models")
    return lines


def static_models_lines() -> List[str]:
    lines = []
    for family, names in STATIC_MODELS:
        lines.append(f"  {family}:")
        lines.extend(f"    • {name}" for name in names)
        lines.append("")
    lines.append("Note: Actual availability depends on your access level.")
    return lines


def dump_models(listing: Dict[str, Any]) -> str:
    return json.dumps(listing, indent=2, ensure_ascii=False)
