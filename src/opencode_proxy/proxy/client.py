"""
Client HTTPX sortant vers l'upstream Anthropic.

Construit une seule fois au démarrage selon la politique réseau de la
config (proxy sortant, CA custom, vérification TLS). Pas de retry: un
échec de transport remonte tel quel à l'appelant (502).

Le timeout est global à la requête (envoi + lecture du body), pas par
octet: une génération lente mais continue ne doit pas être coupée avant
UPSTREAM_TIMEOUT.
"""
import logging
import ssl
from typing import Dict, Optional, Union

import anyio
import httpx

from ..config.settings import ProxyConfig
from ..core.constants import (
    UPSTREAM_TIMEOUT,
    UPSTREAM_CONNECT_TIMEOUT,
    SUPPORTED_PROXY_SCHEMES,
)
from ..core.exceptions import ConfigurationError, UpstreamUnavailableError

logger = logging.getLogger(__name__)


def _build_verify(config: ProxyConfig) -> Union[bool, ssl.SSLContext]:
    """Politique TLS: désactivée, CA custom (remplace le trust store), ou défaut."""
    if config.insecure_skip_verify:
        logger.warning(
            "⚠️ Vérification TLS désactivée (insecure_skip_verify): "
            "les certificats upstream ne sont pas contrôlés"
        )
        return False

    if config.ca_cert:
        try:
            return ssl.create_default_context(cafile=config.ca_cert)
        except (OSError, ValueError) as e:
            raise ConfigurationError(
                message=f"Certificat CA illisible: {config.ca_cert} ({e})",
                config_key="ca_cert"
            ) from e

    return True


def _validate_proxy_url(proxy_url: str) -> str:
    try:
        url = httpx.URL(proxy_url)
    except (httpx.InvalidURL, ValueError) as e:
        raise ConfigurationError(
            message=f"URL de proxy invalide: {proxy_url} ({e})",
            config_key="proxy"
        ) from e
    if url.scheme not in SUPPORTED_PROXY_SCHEMES or not url.host:
        raise ConfigurationError(
            message=f"URL de proxy invalide: {proxy_url}",
            config_key="proxy"
        )
    return proxy_url


def create_http_client(config: ProxyConfig, timeout: float = UPSTREAM_TIMEOUT) -> httpx.AsyncClient:
    """
    Crée le client httpx selon la politique réseau.

    Raises:
        ConfigurationError: URL de proxy ou certificat CA invalide
    """
    kwargs = {
        "timeout": httpx.Timeout(timeout, connect=UPSTREAM_CONNECT_TIMEOUT),
        "verify": _build_verify(config),
    }
    if config.proxy:
        kwargs["proxy"] = _validate_proxy_url(config.proxy)

    try:
        return httpx.AsyncClient(**kwargs)
    except (ImportError, ValueError) as e:
        # ImportError: proxy socks sans l'extra httpx[socks]
        raise ConfigurationError(
            message=f"Client HTTP impossible à créer: {e}",
            config_key="proxy"
        ) from e


class ProxyClient:
    """
    Client HTTP pour le proxy vers l'upstream.

    Gère:
    - La construction des requêtes sortantes
    - L'envoi en mode stream avec deadline globale
    - La lecture brute d'un body bufferisé
    """

    def __init__(self, client: httpx.AsyncClient, timeout: float = UPSTREAM_TIMEOUT):
        self.timeout = timeout
        self._client = client

    @property
    def http(self) -> httpx.AsyncClient:
        return self._client

    def deadline(self) -> float:
        """Échéance absolue (horloge anyio) d'une requête démarrant maintenant."""
        return anyio.current_time() + self.timeout

    def build_request(
        self,
        method: str,
        url: str,
        headers: Dict[str, str],
        content: bytes
    ) -> httpx.Request:
        """Construit une requête HTTPX."""
        return self._client.build_request(method, url, headers=headers, content=content)

    async def send(self, request: httpx.Request, deadline: Optional[float] = None) -> httpx.Response:
        """
        Envoie la requête et retourne la réponse ouverte en streaming.

        Le body n'est pas lu: l'appelant choisit le mode de relais selon le statut.

        Raises:
            UpstreamUnavailableError: Échec de transport ou deadline dépassée
        """
        url = str(request.url)
        response = None
        with anyio.CancelScope(deadline=deadline if deadline is not None else self.deadline()) as scope:
            try:
                response = await self._client.send(request, stream=True)
            except httpx.HTTPError as e:
                raise UpstreamUnavailableError(str(e) or type(e).__name__, url=url) from e

        if scope.cancelled_caught or response is None:
            raise UpstreamUnavailableError(f"timeout après {self.timeout:.0f}s", url=url)
        return response

    async def read_raw(self, response: httpx.Response, deadline: Optional[float] = None) -> bytes:
        """
        Lit le body brut (non décompressé) en une fois, puis ferme la réponse.

        Raises:
            UpstreamUnavailableError: Lecture interrompue ou deadline dépassée
        """
        chunks = []
        completed = False
        try:
            with anyio.CancelScope(deadline=deadline if deadline is not None else self.deadline()):
                async for chunk in response.aiter_raw():
                    chunks.append(chunk)
                completed = True
        except httpx.HTTPError as e:
            raise UpstreamUnavailableError(str(e) or type(e).__name__, url=str(response.url)) from e
        finally:
            await response.aclose()

        if not completed:
            raise UpstreamUnavailableError(
                f"timeout après {self.timeout:.0f}s pendant la lecture", url=str(response.url)
            )
        return b"".join(chunks)

    async def aclose(self) -> None:
        await self._client.aclose()


def create_proxy_client(config: ProxyConfig, timeout: float = UPSTREAM_TIMEOUT) -> ProxyClient:
    """
    Crée le client proxy à partir de la config.

    Args:
        config: Configuration (politique réseau)
        timeout: Timeout global par requête en secondes

    Returns:
        Instance de ProxyClient
    """
    return ProxyClient(create_http_client(config, timeout=timeout), timeout=timeout)
