"""
Journalisation du cycle de vie des requêtes proxy.

Trois niveaux pilotés par deux flags indépendants:
- quiet: rien n'est émis (prioritaire sur verbose)
- normal: START / DONE / MODEL / ERROR
- verbose: + lignes DEBUG (modèle, URL upstream, statut)

Les records passent par une QueueHandler: l'écriture sur stderr se fait
dans le thread du QueueListener, jamais sur le chemin du relais.
"""
import logging
import queue
import sys
from logging.handlers import QueueHandler, QueueListener
from typing import Optional

LOGGER_NAME = "opencode_proxy"
LOG_FORMAT = "[%(asctime)s] %(message)s"
LOG_DATEFMT = "%H:%M:%S"

# Au-dessus de CRITICAL: plus rien ne passe
QUIET_LEVEL = logging.CRITICAL + 10


def resolve_log_level(verbose: bool = False, quiet: bool = False) -> int:
    """Traduit les flags CLI en niveau logging. quiet l'emporte sur verbose."""
    if quiet:
        return QUIET_LEVEL
    if verbose:
        return logging.DEBUG
    return logging.INFO


def configure_logging(verbose: bool = False, quiet: bool = False, stream=None) -> QueueListener:
    """
    Installe le logging non bloquant du proxy.

    Args:
        verbose: Active les lignes DEBUG
        quiet: Coupe toute sortie
        stream: Flux de sortie (défaut: stderr)

    Returns:
        Le QueueListener démarré (à arrêter au shutdown)
    """
    log_queue: "queue.Queue[logging.LogRecord]" = queue.Queue(-1)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=LOG_DATEFMT))

    logger = logging.getLogger(LOGGER_NAME)
    for existing in list(logger.handlers):
        if isinstance(existing, QueueHandler):
            logger.removeHandler(existing)
    logger.addHandler(QueueHandler(log_queue))
    logger.setLevel(resolve_log_level(verbose, quiet))
    logger.propagate = False

    listener = QueueListener(log_queue, handler, respect_handler_level=False)
    listener.start()
    return listener


def format_elapsed(seconds: float) -> str:
    """Durée arrondie à la milliseconde: '250ms', '1.5s', '2s'."""
    millis = int(round(seconds * 1000))
    if millis < 1000:
        return f"{millis}ms"
    text = f"{millis / 1000:.3f}".rstrip("0").rstrip(".")
    return f"{text}s"


class LifecycleLogger:
    """Émet les records START/DONE/ERROR d'une requête, corrélés par leur numéro."""

    def __init__(
        self,
        verbose: bool = False,
        quiet: bool = False,
        logger: Optional[logging.Logger] = None
    ):
        self.verbose = verbose and not quiet
        self.quiet = quiet
        self._logger = logger or logging.getLogger(f"{LOGGER_NAME}.lifecycle")
        self._logger.setLevel(resolve_log_level(verbose, quiet))

    def _emit(self, level: int, event: str, request_id: Optional[int], message: str) -> None:
        self._logger.log(
            level,
            message,
            extra={"event": event, "request_id": request_id}
        )

    def request_received(self, request_id: int, method: str, path: str) -> None:
        self._emit(logging.DEBUG, "received", request_id, f"REQ    #{request_id} {method} {path}")

    def model_changed(self, model: str) -> None:
        # Un changement de modèle est visible même sans verbose
        self._emit(logging.INFO, "model", None, f"MODEL  {model}")

    def request_started(self, request_id: int, method: str, path: str, streaming: bool) -> None:
        mode = _mode(streaming)
        self._emit(logging.INFO, "start", request_id, f"START  #{request_id} {method} {path} [{mode}]")

    def request_details(self, request_id: int, model: Optional[str], streaming: bool) -> None:
        self._emit(
            logging.DEBUG, "details", request_id,
            f"REQ    #{request_id} model={model or ''} stream={str(streaming).lower()}"
        )

    def upstream_target(self, request_id: int, url: str) -> None:
        self._emit(logging.DEBUG, "proxy", request_id, f"PROXY  #{request_id} -> {url}")

    def upstream_status(self, request_id: int, status_code: int) -> None:
        self._emit(logging.DEBUG, "response", request_id, f"RES    #{request_id} status={status_code}")

    def stream_ended(self, request_id: int, outcome: str, detail: str = "") -> None:
        suffix = f": {detail}" if detail else ""
        self._emit(logging.DEBUG, "stream_end", request_id, f"STREAM #{request_id} {outcome}{suffix}")

    def request_failed(self, request_id: int, reason: str) -> None:
        self._emit(logging.ERROR, "error", request_id, f"ERROR  #{request_id} {reason}")

    def request_done(self, request_id: int, streaming: bool, total_bytes: int, elapsed: float) -> None:
        mode = _mode(streaming)
        self._emit(
            logging.INFO, "done", request_id,
            f"DONE   #{request_id} [{mode}] {total_bytes}B {format_elapsed(elapsed)}"
        )


def _mode(streaming: bool) -> str:
    return "stream" if streaming else "sync"
