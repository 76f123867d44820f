"""
Route API pour le health check.
"""
from fastapi import APIRouter, Depends

from ...core.context import ProxyContext
from ...core.exceptions import CredentialError
from ...proxy.auth import get_token
from ..dependencies import get_proxy_context

router = APIRouter()


@router.get("/health")
async def health_check(ctx: ProxyContext = Depends(get_proxy_context)):
    """
    Cible, mode d'auth et disponibilité du token.

    Aucun appel upstream. Toujours 200: un credential introuvable donne
    simplement has_token=false.
    """
    config = ctx.config
    try:
        has_token = bool(get_token(config).token)
    except CredentialError:
        has_token = False

    return {
        "status": "ok",
        "target": config.target,
        "auth_type": config.auth_type,
        "cf_access": config.cf_access,
        "has_token": has_token
    }
