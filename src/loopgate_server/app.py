"""HTTP server exposing pause/resume/stop for one loop controller.

Provides a Starlette-based REST API:

    GET  /loop            -> status snapshot
    POST /loop/pause      -> pause(),  returns status
    POST /loop/resume     -> resume(), returns status
    POST /loop/stop       -> stop(),   returns status
    GET  /loop/events     -> buffered event history (?kind=pause&limit=10)

The app must be served on the same event loop as the controller's run;
handlers call the controller directly and never suspend in between.
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from loopgate.controller import LoopController
from loopgate.events import EventKind, LoopEvent

logger = logging.getLogger(__name__)

_SCALARS = (str, int, float, bool, type(None))


class LoopStatus(BaseModel):
    """Point-in-time view of a controller."""

    name: str
    paused: bool
    suspended: bool
    running: bool

    @classmethod
    def of(cls, controller: LoopController) -> LoopStatus:
        return cls(
            name=controller.config.name,
            paused=controller.paused,
            suspended=controller.suspended,
            running=controller.running,
        )


class EventRecord(BaseModel):
    """JSON form of a ``LoopEvent``. Non-scalar data values are repr()'d."""

    kind: str
    data: dict[str, Any]
    timestamp: float

    @classmethod
    def of(cls, event: LoopEvent) -> EventRecord:
        data = {k: v if isinstance(v, _SCALARS) else repr(v) for k, v in event.data.items()}
        return cls(kind=str(event.kind), data=data, timestamp=event.timestamp)


def create_app(controller: LoopController) -> Starlette:
    """Build the control app bound to ``controller``."""

    def _status() -> JSONResponse:
        return JSONResponse(LoopStatus.of(controller).model_dump())

    async def _handle_status(request: Request) -> JSONResponse:
        return _status()

    async def _handle_pause(request: Request) -> JSONResponse:
        logger.info("Pause requested over HTTP for loop %r", controller.config.name)
        controller.pause()
        return _status()

    async def _handle_resume(request: Request) -> JSONResponse:
        logger.info("Resume requested over HTTP for loop %r", controller.config.name)
        controller.resume()
        return _status()

    async def _handle_stop(request: Request) -> JSONResponse:
        logger.info("Stop requested over HTTP for loop %r", controller.config.name)
        controller.stop()
        return _status()

    async def _handle_events(request: Request) -> JSONResponse:
        events = controller.events.history

        kind = request.query_params.get("kind")
        if kind is not None:
            try:
                wanted = EventKind(kind)
            except ValueError:
                return JSONResponse({"error": f"Unknown event kind '{kind}'"}, status_code=400)
            events = [e for e in events if e.kind == wanted]

        limit = request.query_params.get("limit")
        if limit is not None:
            try:
                n = int(limit)
            except ValueError:
                n = -1
            if n < 0:
                return JSONResponse(
                    {"error": "limit must be a non-negative integer"}, status_code=400
                )
            events = events[-n:] if n else []

        return JSONResponse({"events": [EventRecord.of(e).model_dump() for e in events]})

    routes = [
        Route("/loop", _handle_status, methods=["GET"]),
        Route("/loop/pause", _handle_pause, methods=["POST"]),
        Route("/loop/resume", _handle_resume, methods=["POST"]),
        Route("/loop/stop", _handle_stop, methods=["POST"]),
        Route("/loop/events", _handle_events, methods=["GET"]),
    ]
    return Starlette(routes=routes)
