"""
Route proxy principale: toute méthode, tout chemin vers l'upstream.

Étapes par requête:
1. Lecture du body entrant (400 si impossible)
2. SANITIZER: retrait des champs client-only, détection stream/model
3. AUTH: résolution du token et choix des headers (500 si impossible)
4. FORWARD: envoi à `<target><path>` (502 si échec de transport)
5. RELAY: SSE frame par frame si stream=true et statut 200, sinon copie bufferisée
"""
import time

from fastapi import APIRouter, Depends, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.requests import ClientDisconnect

from ...core.constants import ANTHROPIC_VERSION, PROXY_METHODS
from ...core.context import ProxyContext
from ...core.exceptions import CredentialError, UpstreamUnavailableError
from ...proxy.auth import auth_headers_for, get_token
from ...proxy.relay import buffered_response
from ...proxy.sanitizer import sanitize_request_body
from ...proxy.stream import EventStreamResponse
from ..dependencies import get_proxy_context

router = APIRouter()


@router.api_route("/{path:path}", methods=PROXY_METHODS)
async def proxy_request(request: Request, ctx: ProxyContext = Depends(get_proxy_context)) -> Response:
    """Relaie la requête vers l'upstream en réécrivant l'authentification."""
    started_at = time.monotonic()
    request_id = ctx.next_request_id()
    lifecycle = ctx.lifecycle
    method = request.method
    path = request.url.path

    lifecycle.request_received(request_id, method, path)

    try:
        body = await request.body()
    except ClientDisconnect:
        lifecycle.request_failed(request_id, "failed to read request body: client disconnected")
        return PlainTextResponse("Failed to read request body", status_code=400)

    sanitized = sanitize_request_body(body)

    if ctx.observe_model(sanitized.model):
        lifecycle.model_changed(sanitized.model)
    lifecycle.request_started(request_id, method, path, sanitized.is_streaming)
    lifecycle.request_details(request_id, sanitized.model, sanitized.is_streaming)

    try:
        credential = get_token(ctx.config)
    except CredentialError as e:
        lifecycle.request_failed(request_id, f"auth failed: {e.message}")
        return PlainTextResponse("Failed to get auth token", status_code=500)

    upstream_url = ctx.config.upstream_base + path
    lifecycle.upstream_target(request_id, upstream_url)

    headers = {
        "Content-Type": "application/json",
        "anthropic-version": ANTHROPIC_VERSION,
        **auth_headers_for(ctx.config, credential),
    }

    client = ctx.client
    deadline = client.deadline()
    upstream_request = client.build_request(method, upstream_url, headers, sanitized.body)

    try:
        upstream = await client.send(upstream_request, deadline)
    except UpstreamUnavailableError as e:
        lifecycle.request_failed(request_id, f"upstream failed: {e.message}")
        return PlainTextResponse(f"Upstream request failed: {e.message}", status_code=502)

    lifecycle.upstream_status(request_id, upstream.status_code)

    if sanitized.is_streaming and upstream.status_code == 200:
        return EventStreamResponse(
            upstream,
            lifecycle=lifecycle,
            request_id=request_id,
            started_at=started_at,
            deadline=deadline
        )

    # stream=true avec un statut != 200: le body d'erreur est recopié d'un bloc
    try:
        content = await client.read_raw(upstream, deadline)
    except UpstreamUnavailableError as e:
        lifecycle.request_failed(request_id, f"upstream failed: {e.message}")
        return PlainTextResponse(f"Upstream request failed: {e.message}", status_code=502)

    lifecycle.request_done(
        request_id,
        sanitized.is_streaming,
        len(content),
        time.monotonic() - started_at
    )
    return buffered_response(upstream, content)
