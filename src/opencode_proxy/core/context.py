"""
Contexte process partagé par tous les handlers.

Créé une fois avant que le serveur accepte des connexions, puis lu en
lecture seule. Seuls le compteur de requêtes et le dernier modèle vu sont
mutables, et toujours sous verrou.
"""
import itertools
import threading
from dataclasses import dataclass, field
from typing import Optional

from ..config.settings import ProxyConfig
from ..proxy.client import ProxyClient
from .lifecycle import LifecycleLogger


@dataclass
class ProxyContext:
    """État process: config figée, client sortant, logger, compteur."""
    config: ProxyConfig
    client: ProxyClient
    lifecycle: LifecycleLogger = field(default_factory=LifecycleLogger)
    _counter: "itertools.count[int]" = field(default_factory=lambda: itertools.count(1), repr=False)
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False)
    _last_model: Optional[str] = field(default=None, repr=False)

    def next_request_id(self) -> int:
        """Numéro de séquence unique et croissant pour la requête entrante."""
        with self._lock:
            return next(self._counter)

    def observe_model(self, model: Optional[str]) -> bool:
        """
        Enregistre le modèle de la requête courante.

        Returns:
            True si le modèle diffère de celui de la requête précédente
        """
        if not model:
            return False
        with self._lock:
            if model == self._last_model:
                return False
            self._last_model = model
            return True

    @property
    def last_model(self) -> Optional[str]:
        return self._last_model
