"""
Relais bufferisé: la réponse upstream est recopiée telle quelle.

Statut, headers (multi-valués compris) et body brut sont transmis sans
modification. Seuls les headers hop-by-hop, propres à la connexion
upstream, sont retirés.
"""
from typing import Iterable, List, Tuple

import httpx
from fastapi.responses import Response

from ..core.constants import HOP_BY_HOP_HEADERS


def filter_response_headers(raw_headers: Iterable[Tuple[bytes, bytes]]) -> List[Tuple[bytes, bytes]]:
    """
    Filtre les headers hop-by-hop de la réponse upstream.

    Pourquoi garder content-encoding/content-length: le body est relayé
    brut (non décompressé), ils restent donc exacts.
    """
    filtered = []
    for key, value in raw_headers:
        name = key.lower()
        if name.decode("latin-1") in HOP_BY_HOP_HEADERS:
            continue
        filtered.append((name, value))
    return filtered


def buffered_response(upstream: httpx.Response, body: bytes) -> Response:
    """
    Construit la réponse client à partir du body upstream déjà lu.

    Args:
        upstream: Réponse upstream (statut + headers)
        body: Body brut complet

    Returns:
        Response starlette envoyée en une seule écriture
    """
    response = Response(content=body, status_code=upstream.status_code)
    raw_headers = filter_response_headers(upstream.headers.raw)
    if not any(name == b"content-length" for name, _ in raw_headers):
        raw_headers.append((b"content-length", str(len(body)).encode("latin-1")))
    response.raw_headers = raw_headers
    return response
