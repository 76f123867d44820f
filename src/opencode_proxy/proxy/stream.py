"""
Relais SSE frame par frame.

Pourquoi pas un simple StreamingResponse:
- chaque frame lue doit être écrite ET flushée avant de lire la suivante
- le flush est une capacité explicite de la destination (FlushableSink),
  vérifiée avant d'écrire quoi que ce soit
- chaque sortie de boucle correspond à un RelayOutcome explicite

Sorties possibles:
- END_OF_STREAM: l'upstream a terminé
- READ_ERROR: lecture upstream interrompue, traitée comme une fin normale
- CALLER_GONE: le client est parti, on arrête de consommer l'upstream
- DEADLINE: timeout global de la requête atteint
- NO_FLUSHER: destination incapable de flusher, aucune frame écrite
"""
import enum
import time
from dataclasses import dataclass
from functools import partial
from typing import AsyncIterator, Optional, Protocol, runtime_checkable

import anyio
import httpx
from starlette.responses import Response
from starlette.types import Message, Receive, Scope, Send

from ..core.constants import EVENT_STREAM_HEADERS
from ..core.exceptions import FlushNotSupportedError, RelayWriteFailure
from ..core.lifecycle import LifecycleLogger


@runtime_checkable
class FlushableSink(Protocol):
    """Destination capable d'écrire puis de pousser immédiatement une frame."""

    async def write(self, frame: bytes) -> None:
        ...

    async def flush(self) -> None:
        ...


class RelayOutcome(str, enum.Enum):
    END_OF_STREAM = "end_of_stream"
    READ_ERROR = "read_error"
    CALLER_GONE = "caller_gone"
    DEADLINE = "deadline"
    NO_FLUSHER = "no_flusher"


@dataclass
class RelayResult:
    """Bilan du relais, rempli au fil de l'eau (utile si la boucle est annulée)."""
    frames: int = 0
    bytes: int = 0
    outcome: Optional[RelayOutcome] = None
    error: str = ""


def require_flushable(sink: object) -> FlushableSink:
    """
    Raises:
        FlushNotSupportedError: La destination n'expose pas write/flush
    """
    if not isinstance(sink, FlushableSink):
        raise FlushNotSupportedError(sink_type=type(sink).__name__)
    return sink


async def iter_frames(response: httpx.Response) -> AsyncIterator[bytes]:
    """
    Découpe le body upstream en frames terminées par '\\n'.

    Les octets sont conservés tels quels (\\r compris). Un reliquat sans
    '\\n' final est émis en dernier.
    """
    pending = b""
    async for chunk in response.aiter_bytes():
        pending += chunk
        start = 0
        while True:
            end = pending.find(b"\n", start)
            if end < 0:
                break
            yield pending[start:end + 1]
            start = end + 1
        pending = pending[start:]
    if pending:
        yield pending


async def relay_event_stream(
    frames: AsyncIterator[bytes],
    sink: object,
    result: Optional[RelayResult] = None
) -> RelayResult:
    """
    Boucle lecture -> écriture -> flush, une frame à la fois.

    Args:
        frames: Frames upstream (lues une seule fois)
        sink: Destination, doit respecter FlushableSink
        result: Bilan à remplir (créé si absent)

    Returns:
        RelayResult avec l'issue de la boucle

    Raises:
        FlushNotSupportedError: Avant toute lecture, si le sink ne flush pas
    """
    result = result if result is not None else RelayResult()
    target = require_flushable(sink)

    iterator = frames.__aiter__()
    try:
        while True:
            try:
                frame = await iterator.__anext__()
            except StopAsyncIteration:
                result.outcome = RelayOutcome.END_OF_STREAM
                break
            except (httpx.HTTPError, httpx.StreamError) as e:
                result.outcome = RelayOutcome.READ_ERROR
                result.error = str(e) or type(e).__name__
                break

            try:
                await target.write(frame)
                await target.flush()
            except RelayWriteFailure as e:
                result.outcome = RelayOutcome.CALLER_GONE
                result.error = e.message
                break

            result.frames += 1
            result.bytes += len(frame)
    finally:
        aclose = getattr(iterator, "aclose", None)
        if aclose is not None:
            with anyio.CancelScope(shield=True):
                await aclose()

    return result


class ASGIFrameSink:
    """Sink ASGI: chaque flush devient un message http.response.body."""

    def __init__(self, send: Send):
        self._send = send
        self._pending = []
        self.messages_sent = 0

    async def write(self, frame: bytes) -> None:
        self._pending.append(frame)

    async def flush(self) -> None:
        if not self._pending:
            return
        body = b"".join(self._pending)
        self._pending.clear()
        await self._send_message({"type": "http.response.body", "body": body, "more_body": True})

    async def close(self) -> None:
        await self.flush()
        await self._send_message({"type": "http.response.body", "body": b"", "more_body": False})

    async def _send_message(self, message: Message) -> None:
        try:
            await self._send(message)
        except OSError as e:
            raise RelayWriteFailure(f"Écriture client impossible: {e}", self.messages_sent) from e
        self.messages_sent += 1


class EventStreamResponse(Response):
    """
    Réponse SSE: statut 200 envoyé tout de suite, puis relais frame par frame.

    La réponse upstream est toujours fermée à la fin, y compris quand le
    client se déconnecte en cours de route.
    """

    def __init__(
        self,
        upstream: httpx.Response,
        *,
        lifecycle: LifecycleLogger,
        request_id: int,
        started_at: float,
        deadline: Optional[float] = None
    ):
        self.upstream = upstream
        self.lifecycle = lifecycle
        self.request_id = request_id
        self.started_at = started_at
        self.deadline = deadline
        self.status_code = 200
        self.background = None
        self.result = RelayResult()
        self.init_headers(EVENT_STREAM_HEADERS)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        sink = ASGIFrameSink(send)
        try:
            await send({
                "type": "http.response.start",
                "status": self.status_code,
                "headers": self.raw_headers,
            })

            spec_version = tuple(map(int, scope.get("asgi", {}).get("spec_version", "2.0").split(".")))
            if spec_version >= (2, 4):
                # Le serveur lève OSError à l'écriture si le client est parti
                await self._relay(sink)
            else:
                async with anyio.create_task_group() as task_group:

                    async def wrap(func) -> None:
                        await func()
                        task_group.cancel_scope.cancel()

                    task_group.start_soon(wrap, partial(self._relay, sink))
                    await wrap(partial(self._listen_for_disconnect, receive))

            if self.result.outcome is None:
                self.result.outcome = RelayOutcome.CALLER_GONE
            if self.result.outcome not in (RelayOutcome.CALLER_GONE, RelayOutcome.NO_FLUSHER):
                await sink.close()
        except (OSError, RelayWriteFailure) as e:
            self.result.outcome = RelayOutcome.CALLER_GONE
            self.result.error = str(e)
        finally:
            with anyio.CancelScope(shield=True):
                await self.upstream.aclose()
            self._log_completion()

    async def _relay(self, sink: ASGIFrameSink) -> None:
        with anyio.CancelScope(deadline=self.deadline if self.deadline is not None else float("inf")) as scope:
            try:
                await relay_event_stream(iter_frames(self.upstream), sink, result=self.result)
            except FlushNotSupportedError as e:
                self.result.outcome = RelayOutcome.NO_FLUSHER
                self.result.error = e.message
        if scope.cancelled_caught:
            self.result.outcome = RelayOutcome.DEADLINE

    async def _listen_for_disconnect(self, receive: Receive) -> None:
        while True:
            message = await receive()
            if message["type"] == "http.disconnect":
                break

    def _log_completion(self) -> None:
        outcome = self.result.outcome or RelayOutcome.CALLER_GONE
        if outcome == RelayOutcome.NO_FLUSHER:
            self.lifecycle.request_failed(self.request_id, f"flusher not supported: {self.result.error}")
            return
        if outcome != RelayOutcome.END_OF_STREAM:
            self.lifecycle.stream_ended(self.request_id, outcome.value, self.result.error)
        self.lifecycle.request_done(
            self.request_id,
            True,
            self.result.bytes,
            time.monotonic() - self.started_at
        )
