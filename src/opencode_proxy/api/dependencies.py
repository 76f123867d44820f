"""
Dépendances FastAPI partagées par les routes.
"""
from fastapi import Request

from ..core.context import ProxyContext


def get_proxy_context(request: Request) -> ProxyContext:
    """Contexte process attaché à l'application par create_app()."""
    return request.app.state.proxy_context
