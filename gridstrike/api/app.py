"""
FastAPI Application - REST API for game clients.

Endpoints:
    POST   /api/v1/matches                              Create a match (matchmaking)
    GET    /api/v1/matches                              List active matches
    GET    /api/v1/matches/{id}                         Match summary
    DELETE /api/v1/matches/{id}                         End a match
    GET    /api/v1/matches/{id}/state                   Caller's filtered state
    POST   /api/v1/matches/{id}/actions                 Submit the caller's action
    POST   /api/v1/matches/{id}/animation-complete      Confirm replay finished
    WS     /api/v1/matches/{id}/ws?user_id=...          Filtered state pushes

Turn Flow:
    1. Each player POSTs one action; the first gets waiting_for_opponent
    2. The second POST resolves the turn and returns the animation script
    3. Both clients replay it, then POST /animation-complete
    4. Once both have confirmed, the next turn accepts actions

The caller is identified by the X-User-Id header. Authentication itself
happens upstream; requests without the header are rejected as
unauthenticated.
"""

from contextlib import asynccontextmanager
from typing import Annotated, Optional
import asyncio
import contextlib
import json
import logging
import os

from fastapi import FastAPI, Header, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .. import __version__
from ..errors import ErrorKind, GridStrikeError
from .schemas import (
    # Request models
    CreateMatchRequest,
    SubmitActionRequest,
    # Response models
    AnimationCompleteResponse,
    EndMatchResponse,
    ErrorResponse,
    HealthResponse,
    MatchListResponse,
    MatchResponse,
    MatchStateResponse,
    SubmitActionResponse,
    # Enums
    ErrorCode,
)
from .service import APIService

logger = logging.getLogger(__name__)

# Environment configuration
GRIDSTRIKE_ENV = os.getenv("GRIDSTRIKE_ENV", "development")
ALLOWED_ORIGINS = os.getenv("ALLOWED_ORIGINS", "*").split(",")
GRIDSTRIKE_LOG_LEVEL = os.getenv("GRIDSTRIKE_LOG_LEVEL", "INFO")
GRIDSTRIKE_MATCH_TTL = int(os.getenv("GRIDSTRIKE_MATCH_TTL", "3600"))

STATUS_BY_KIND = {
    ErrorKind.UNAUTHENTICATED: 401,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.PERMISSION_DENIED: 403,
    ErrorKind.ALREADY_SUBMITTED: 409,
    ErrorKind.INVALID_ARGUMENT: 400,
    ErrorKind.FAILED_PRECONDITION: 409,
    ErrorKind.INTERNAL: 500,
}

# WebSocket close codes mirror the HTTP status in the 4xxx range
WS_CLOSE_BY_KIND = {kind: 4000 + status for kind, status in STATUS_BY_KIND.items()}

UserId = Annotated[Optional[str], Header(alias="X-User-Id")]


def create_app(
    service: Optional[APIService] = None,
    reap_interval: Optional[float] = 60.0,
) -> FastAPI:
    """
    Create the FastAPI application.

    Args:
        service: Optional APIService instance (creates new if not provided)
        reap_interval: Seconds between stale-match sweeps; None disables them

    Returns:
        FastAPI application instance
    """
    logging.basicConfig(
        level=GRIDSTRIKE_LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    api_service = service or APIService()

    # Live sockets per match: (user_id, socket)
    ws_connections: dict[str, list[tuple[str, WebSocket]]] = {}

    async def reap_stale_matches():
        while True:
            await asyncio.sleep(reap_interval)
            removed = api_service.match_manager.cleanup_stale_matches(GRIDSTRIKE_MATCH_TTL)
            if removed:
                logger.info("Reaped %d stale matches", len(removed))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        task = asyncio.create_task(reap_stale_matches()) if reap_interval else None
        yield
        if task:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

    app = FastAPI(
        title="GridStrike Engine API",
        description="""
Simultaneous-turn tactical card game engine.

## Error Codes

| Code | HTTP | Description |
|------|------|-------------|
| `unauthenticated` | 401 | Missing `X-User-Id` |
| `not-found` | 404 | Match or piece does not exist |
| `permission-denied` | 403 | Not a participant, or not your piece |
| `already-submitted` | 409 | Action already submitted this turn |
| `invalid-argument` | 400 | Malformed request |
| `failed-precondition` | 409 | Match finished or last turn still animating |
| `internal` | 500 | Engine failure |
        """,
        version=__version__,
        docs_url="/api/docs",
        redoc_url="/api/redoc",
        lifespan=lifespan,
    )
    app.state.ws_connections = ws_connections

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # =========================================================================
    # Error helpers
    # =========================================================================

    def make_error_response(
        error_code: ErrorCode,
        message: str,
        status_code: int = 400,
        details: Optional[dict] = None,
    ) -> JSONResponse:
        """Create a standardized error response."""
        return JSONResponse(
            status_code=status_code,
            content=ErrorResponse(
                error=message,
                error_code=error_code,
                details=details,
            ).model_dump(mode="json"),
        )

    @app.exception_handler(GridStrikeError)
    async def handle_engine_error(request: Request, exc: GridStrikeError) -> JSONResponse:
        if exc.kind is ErrorKind.INTERNAL:
            logger.error("Internal error on %s: %s", request.url.path, exc)
        else:
            logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
        return make_error_response(
            ErrorCode(exc.kind.value),
            exc.message,
            status_code=STATUS_BY_KIND[exc.kind],
            details=exc.context or None,
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        return make_error_response(
            ErrorCode.INVALID_ARGUMENT,
            "Invalid request",
            status_code=400,
            details={"errors": json.loads(json.dumps(exc.errors(), default=str))},
        )

    @app.exception_handler(Exception)
    async def handle_unexpected(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s", request.url.path)
        return make_error_response(ErrorCode.INTERNAL, "Internal error", status_code=500)

    async def broadcast_state(match_id: str):
        """Push each connected participant their own filtered state."""
        dead_connections = []
        for user_id, ws in list(ws_connections.get(match_id, [])):
            try:
                state = api_service.get_state(match_id, user_id)
                await ws.send_json({
                    "type": "state_update",
                    "payload": state.model_dump(mode="json", by_alias=True),
                })
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug("Dropping socket for %s in %s: %s", user_id, match_id, e)
                dead_connections.append((user_id, ws))
            except GridStrikeError as e:
                logger.info("Dropping socket for %s in %s: %s", user_id, match_id, e)
                dead_connections.append((user_id, ws))
        connections = ws_connections.get(match_id, [])
        for entry in dead_connections:
            if entry in connections:
                connections.remove(entry)

    # =========================================================================
    # Match Endpoints
    # =========================================================================

    @app.post(
        "/api/v1/matches",
        response_model=MatchResponse,
        status_code=201,
        responses={400: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Create a match for two paired users",
    )
    async def create_match(body: CreateMatchRequest) -> MatchResponse:
        """Called by matchmaking once two users are paired."""
        return api_service.create_match(body)

    @app.get(
        "/api/v1/matches",
        response_model=MatchListResponse,
        tags=["Matches"],
        summary="List active matches",
    )
    async def list_matches() -> MatchListResponse:
        matches = api_service.list_matches()
        return MatchListResponse(matches=matches, count=len(matches))

    @app.get(
        "/api/v1/matches/{match_id}",
        response_model=MatchResponse,
        responses={404: {"model": ErrorResponse}},
        tags=["Matches"],
        summary="Get match summary",
    )
    async def get_match(match_id: str) -> MatchResponse:
        return api_service.get_match(match_id)

    @app.delete(
        "/api/v1/matches/{match_id}",
        response_model=EndMatchResponse,
        tags=["Matches"],
        summary="End a match",
    )
    async def end_match(
        match_id: str,
        reason: Annotated[str, Query(description="Reason for ending")] = "user_ended",
    ) -> EndMatchResponse:
        success = api_service.end_match(match_id, reason)
        return EndMatchResponse(success=success, match_id=match_id)

    # =========================================================================
    # Turn Endpoints
    # =========================================================================

    @app.get(
        "/api/v1/matches/{match_id}/state",
        response_model=MatchStateResponse,
        response_model_by_alias=True,
        responses={
            401: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
        },
        tags=["Turns"],
        summary="Get the caller's filtered state",
    )
    async def get_state(match_id: str, user_id: UserId = None) -> MatchStateResponse:
        """Enemy pieces still in stealth come back as concealed stubs."""
        return api_service.get_state(match_id, user_id)

    @app.post(
        "/api/v1/matches/{match_id}/actions",
        response_model=SubmitActionResponse,
        response_model_by_alias=True,
        responses={
            400: {"model": ErrorResponse},
            401: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
            409: {"model": ErrorResponse, "description": "Already submitted or turn locked"},
        },
        tags=["Turns"],
        summary="Submit the caller's action for this turn",
    )
    async def submit_action(
        match_id: str,
        body: SubmitActionRequest,
        user_id: UserId = None,
    ) -> SubmitActionResponse:
        """
        Submit one action (move, attack, placeTrap) for the open turn.

        The submission that completes the turn gets the animation script.
        """
        response = api_service.submit_action(match_id, user_id, body)
        await broadcast_state(match_id)
        return response

    @app.post(
        "/api/v1/matches/{match_id}/animation-complete",
        response_model=AnimationCompleteResponse,
        responses={
            401: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            404: {"model": ErrorResponse},
        },
        tags=["Turns"],
        summary="Confirm the last turn finished animating",
    )
    async def animation_complete(
        match_id: str,
        user_id: UserId = None,
    ) -> AnimationCompleteResponse:
        response = api_service.notify_animation_complete(match_id, user_id)
        if response.next_turn_ready:
            await broadcast_state(match_id)
        return response

    # =========================================================================
    # WebSocket Endpoint
    # =========================================================================

    @app.websocket("/api/v1/matches/{match_id}/ws")
    async def websocket_endpoint(websocket: WebSocket, match_id: str, user_id: str = ""):
        """
        WebSocket for real-time updates.

        Messages from server:
        - state_update: The caller's filtered state changed
        - error: Bad message from client

        Messages from client:
        - ping: Keep-alive
        """
        await websocket.accept()

        try:
            initial = api_service.get_state(match_id, user_id or None)
        except GridStrikeError as e:
            await websocket.close(code=WS_CLOSE_BY_KIND[e.kind], reason=e.message)
            return

        ws_connections.setdefault(match_id, []).append((user_id, websocket))
        try:
            await websocket.send_json({
                "type": "state_update",
                "payload": initial.model_dump(mode="json", by_alias=True),
            })

            while True:
                data = await websocket.receive_text()
                try:
                    message = json.loads(data)
                except json.JSONDecodeError:
                    await websocket.send_json({
                        "type": "error",
                        "payload": {"message": "Invalid JSON"},
                    })
                    continue
                if isinstance(message, dict) and message.get("type") == "ping":
                    await websocket.send_json({"type": "pong"})

        except WebSocketDisconnect:
            logger.debug("Socket for %s in %s disconnected", user_id, match_id)
        finally:
            entry = (user_id, websocket)
            if entry in ws_connections.get(match_id, []):
                ws_connections[match_id].remove(entry)

    # =========================================================================
    # Health Check
    # =========================================================================

    @app.get(
        "/health",
        response_model=HealthResponse,
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> HealthResponse:
        """Health check endpoint for load balancers."""
        return HealthResponse(
            status="healthy",
            service="gridstrike-engine",
            version=__version__,
        )

    @app.get("/", tags=["System"])
    async def root():
        """Root endpoint with API info."""
        return {
            "name": "GridStrike Engine API",
            "version": __version__,
            "environment": GRIDSTRIKE_ENV,
            "docs": "/api/docs",
            "health": "/health",
        }

    return app


# For running directly: uvicorn gridstrike.api.app:app
app = create_app()
