"""
Exceptions personnalisées pour le proxy Claude/OpenCode.
"""


class ProxyError(Exception):
    """Exception de base pour toutes les erreurs du proxy."""

    def __init__(self, message: str, code: str = None, details: dict = None):
        super().__init__(message)
        self.message = message
        self.code = code or "unknown_error"
        self.details = details or {}

    def __str__(self):
        if self.details:
            return f"[{self.code}] {self.message} - Détails: {self.details}"
        return f"[{self.code}] {self.message}"


class ConfigurationError(ProxyError):
    """Erreur de configuration (fichier invalide, URL cible, politique réseau)."""

    def __init__(self, message: str, config_key: str = None):
        super().__init__(
            message=message,
            code="config_error",
            details={"key": config_key} if config_key else {}
        )


class MalformedRequestBodyError(ProxyError):
    """Body entrant vide ou non-JSON. Jamais fatal: le body passe tel quel."""

    def __init__(self, message: str, body_preview: bytes = None):
        details = {}
        if body_preview:
            details["preview"] = body_preview[:100].decode("utf-8", errors="replace")
        super().__init__(
            message=message,
            code="malformed_body",
            details=details
        )


class CredentialError(ProxyError):
    """Impossible de résoudre le token (fichier absent, entrée manquante, clé vide)."""

    def __init__(self, message: str, auth_type: str = None):
        super().__init__(
            message=message,
            code="credential_error",
            details={"auth_type": auth_type} if auth_type else {}
        )


class UpstreamUnavailableError(ProxyError):
    """Échec de transport vers l'upstream (connexion, TLS, timeout)."""

    def __init__(self, message: str, url: str = None):
        super().__init__(
            message=message,
            code="upstream_unavailable",
            details={"url": url} if url else {}
        )


class RelayWriteFailure(ProxyError):
    """Le client est parti pendant le relais du stream."""

    def __init__(self, message: str = "Client déconnecté", frames_written: int = 0):
        super().__init__(
            message=message,
            code="relay_write_failure",
            details={"frames_written": frames_written}
        )
        self.frames_written = frames_written


class FlushNotSupportedError(ProxyError):
    """La destination ne sait pas flusher frame par frame."""

    def __init__(self, message: str = "Flush incrémental non supporté", sink_type: str = None):
        super().__init__(
            message=message,
            code="flush_not_supported",
            details={"sink": sink_type} if sink_type else {}
        )
