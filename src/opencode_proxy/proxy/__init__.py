"""
Logique de proxy HTTP vers l'upstream Anthropic.
"""

from .sanitizer import SanitizedRequest, sanitize_request_body, parse_request_body
from .auth import ResolvedCredential, get_token, build_auth_headers, auth_headers_for
from .client import ProxyClient, create_http_client, create_proxy_client
from .relay import buffered_response, filter_response_headers
from .models import fetch_models, format_models, models_url
from .stream import (
    FlushableSink,
    RelayOutcome,
    RelayResult,
    ASGIFrameSink,
    EventStreamResponse,
    iter_frames,
    relay_event_stream,
    require_flushable,
)

__all__ = [
    "SanitizedRequest",
    "sanitize_request_body",
    "parse_request_body",
    "ResolvedCredential",
    "get_token",
    "build_auth_headers",
    "auth_headers_for",
    "ProxyClient",
    "create_http_client",
    "create_proxy_client",
    "buffered_response",
    "filter_response_headers",
    "fetch_models",
    "format_models",
    "models_url",
    "FlushableSink",
    "RelayOutcome",
    "RelayResult",
    "ASGIFrameSink",
    "EventStreamResponse",
    "iter_frames",
    "relay_event_stream",
    "require_flushable",
]
