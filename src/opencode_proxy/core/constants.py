"""
Constantes globales du proxy.
"""
import os

# ============================================================================
# CONFIGURATION PAR DÉFAUT
# ============================================================================
CONFIG_DIR = os.path.join(os.path.expanduser("~"), ".config", "claude-opencode-proxy")
CONFIG_FILE = os.path.join(CONFIG_DIR, "config.json")
CONFIG_ENV_VAR = "CLAUDE_OPENCODE_PROXY_CONFIG"

DEFAULT_TARGET = "https://opencode.custom.dev/anthropic"
DEFAULT_LOGIN_URL = "https://opencode.custom.dev"
DEFAULT_AUTH_FILE = os.path.join("~", ".local", "share", "opencode", "auth.json")

DEFAULT_PORT = 8787
DEFAULT_BIND = "127.0.0.1"

# ============================================================================
# AUTHENTIFICATION
# ============================================================================
AUTH_TYPE_APIKEY = "apikey"
AUTH_TYPE_TOKEN_FILE = "token-file"
# Ancien nom du mode fichier, encore présent dans les configs existantes
AUTH_TYPE_LEGACY_ALIASES = {"opencode": AUTH_TYPE_TOKEN_FILE}

CREDENTIAL_KIND_APIKEY = "apikey"
CREDENTIAL_KIND_BEARER = "bearer"

HEADER_API_KEY = "x-api-key"
HEADER_AUTHORIZATION = "Authorization"
HEADER_CF_ACCESS_TOKEN = "cf-access-token"
HEADER_CF_CLIENT_ID = "CF-Access-Client-Id"
HEADER_CF_CLIENT_SECRET = "CF-Access-Client-Secret"

# ============================================================================
# UPSTREAM
# ============================================================================
ANTHROPIC_VERSION = "2023-06-01"
ANTHROPIC_API_URL = "https://api.anthropic.com"
UPSTREAM_TIMEOUT = 300.0  # 5 minutes: la génération de modèle peut être lente
UPSTREAM_CONNECT_TIMEOUT = 10.0

SUPPORTED_PROXY_SCHEMES = ("http", "https", "socks5", "socks5h")

# ============================================================================
# SANITIZER
# ============================================================================
# Champs côté client que l'upstream rejette
STRIPPED_BODY_FIELDS = ("context_management", "mcp_servers")

# ============================================================================
# RELAIS
# ============================================================================
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

EVENT_STREAM_HEADERS = {
    "Content-Type": "text/event-stream",
    "Cache-Control": "no-cache",
    "Connection": "keep-alive",
    "X-Accel-Buffering": "no",  # Désactive buffering nginx
}

PROXY_METHODS = ["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS", "HEAD"]
