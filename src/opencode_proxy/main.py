"""
Claude OpenCode Proxy - Application FastAPI Factory.
Proxy d'authentification + relais SSE vers une API compatible Anthropic.
"""
import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from .api.router import api_router
from .config.loader import load_config
from .config.settings import ProxyConfig
from .core.context import ProxyContext
from .core.lifecycle import LifecycleLogger
from .proxy.client import ProxyClient, create_proxy_client

logger = logging.getLogger(__name__)


def create_app(
    config: Optional[ProxyConfig] = None,
    *,
    verbose: bool = False,
    quiet: bool = False,
    client: Optional[ProxyClient] = None,
    lifecycle: Optional[LifecycleLogger] = None
) -> FastAPI:
    """
    Factory pour créer l'application FastAPI.

    La config est chargée et validée ici, avant que le serveur n'accepte la
    moindre connexion: une politique réseau invalide est fatale au démarrage.

    Args:
        config: Configuration (défaut: load_config())
        verbose: Lignes DEBUG du cycle de vie
        quiet: Aucune ligne de cycle de vie
        client: Client sortant déjà construit (tests)
        lifecycle: Logger de cycle de vie déjà construit (tests)

    Returns:
        Instance configurée de FastAPI

    Raises:
        ConfigurationError: Config invalide (URL cible, proxy, certificat CA)
    """
    config = (config or load_config()).validate()
    context = ProxyContext(
        config=config,
        client=client or create_proxy_client(config),
        lifecycle=lifecycle or LifecycleLogger(verbose=verbose, quiet=quiet)
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Gestion du cycle de vie de l'application."""
        # Startup
        _startup(app)
        yield
        # Shutdown
        await _shutdown(app)

    # Pas de /docs ni /openapi.json: tous les chemins appartiennent à l'upstream
    app = FastAPI(
        title="Claude OpenCode Proxy",
        description="Proxy d'authentification avec relais SSE vers une API compatible Anthropic",
        version="1.0.0",
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
        lifespan=lifespan
    )

    app.state.proxy_context = context
    app.include_router(api_router)

    return app


def _startup(app: FastAPI):
    """Initialisation au démarrage."""
    config = app.state.proxy_context.config
    logger.info("Proxy prêt -> %s (auth: %s, cf-access: %s)", config.target, config.auth_type, config.cf_access)


async def _shutdown(app: FastAPI):
    """Arrêt de l'application: ferme le pool de connexions sortantes."""
    await app.state.proxy_context.client.aclose()
    logger.info("Proxy arrêté proprement")
