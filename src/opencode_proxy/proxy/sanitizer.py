"""
Nettoyage du body JSON avant envoi à l'upstream.

L'upstream rejette certains champs purement côté client
(`context_management`, `mcp_servers`). On les retire, et on en profite
pour lire `stream` et `model` sans modifier le reste du payload.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from ..core.constants import STRIPPED_BODY_FIELDS
from ..core.exceptions import MalformedRequestBodyError


@dataclass(frozen=True)
class SanitizedRequest:
    """Body à transmettre + faits extraits de la requête."""
    body: bytes
    is_streaming: bool = False
    model: Optional[str] = None


def _reject_constant(name: str):
    # NaN / Infinity ne sont pas du JSON
    raise ValueError(f"constante non JSON: {name}")


def parse_request_body(body: bytes) -> Dict[str, Any]:
    """
    Décode le body entrant en objet JSON.

    Raises:
        MalformedRequestBodyError: Body vide, JSON invalide ou pas un objet
    """
    if not body:
        raise MalformedRequestBodyError("Body vide")
    try:
        data = json.loads(body, parse_constant=_reject_constant)
    except (ValueError, RecursionError) as e:
        raise MalformedRequestBodyError(f"JSON invalide: {e}", body_preview=body) from e
    if not isinstance(data, dict):
        raise MalformedRequestBodyError(
            f"Objet JSON attendu, reçu {type(data).__name__}", body_preview=body
        )
    return data


def _serialize(data: Dict[str, Any]) -> Optional[bytes]:
    """JSON compact, ou None si le payload ne peut pas être réécrit à l'identique."""
    try:
        text = json.dumps(data, ensure_ascii=False, allow_nan=False, separators=(",", ":"))
    except ValueError:
        # Nombre hors limites (1e400 -> inf): pas de représentation JSON
        return None
    try:
        return text.encode("utf-8")
    except UnicodeEncodeError:
        # Surrogate isolée ("\ud83d"): on la garde échappée
        return json.dumps(data, ensure_ascii=True, separators=(",", ":")).encode("ascii")


def sanitize_request_body(body: bytes) -> SanitizedRequest:
    """
    Retire les champs non supportés et détecte stream/model.

    Un body illisible n'est jamais bloquant: il part tel quel,
    avec stream=False et model=None. Un body lisible mais impossible à
    réécrire fidèlement part lui aussi tel quel.
    """
    try:
        data = parse_request_body(body)
    except MalformedRequestBodyError:
        return SanitizedRequest(body=body)

    for key in STRIPPED_BODY_FIELDS:
        data.pop(key, None)

    stream = data.get("stream")
    model = data.get("model")
    forwarded = _serialize(data)

    return SanitizedRequest(
        body=forwarded if forwarded is not None else body,
        is_streaming=stream if isinstance(stream, bool) else False,
        model=model if isinstance(model, str) and model else None
    )
