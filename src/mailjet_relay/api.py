"""FastAPI application factory for the Mailjet relay.

Endpoints:

- ``GET /health``: liveness check
- ``GET /config``: startup configuration, consumed by the dashboard
- ``GET|POST /apikey/{apikey}/events``: list or record webhook events
- ``POST /apikey/{apikey}/events/setup``: reconcile a webhook registration
- ``POST /messages``: relay a send-message request
- ``/*``: static dashboard assets, when the static directory exists

Every non-2xx response carries ``{"ErrorMessage": "..."}``. Core errors
(:class:`mailjet_relay.errors.RelayError`) map to their own status; framework
errors (unknown path, wrong method, bad ``Authorization`` header) are rendered
in the same shape.

Example:
    Creating and running the application::

        from mailjet_relay.api import create_app
        from mailjet_relay.config_loader import load_config

        app = create_app(load_config("./config.json"), events_dir="/data/events")
        uvicorn.run(app, host="127.0.0.1", port=3000)
"""

from __future__ import annotations

from pathlib import Path
from typing import AsyncContextManager, Callable, TypeVar

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from fastapi.security import HTTPBasic, HTTPBasicCredentials
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException

from .errors import InvalidRequest, MalformedPayload, RelayError, UnsupportedMethod
from .gateway import UpstreamGateway
from .logger import get_logger
from .models import (
    ApiError,
    Credentials,
    EventRecord,
    EventSetupPayload,
    MessagePayload,
    RelayConfig,
)
from .reconciler import WebhookReconciler
from .relay import MessageRelay
from .store import EventStore

logger = get_logger("MailjetRelayAPI")

API_TITLE = "Mailjet Relay"
DEFAULT_STATIC_DIR = "./public"
ALL_METHODS = {"GET", "HEAD", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"}
NO_CACHE = {"Cache-Control": "no-cache"}

basic_scheme = HTTPBasic(auto_error=False)

ModelT = TypeVar("ModelT", bound=BaseModel)


def error_response(message: str, status_code: int, headers: dict[str, str] | None = None) -> JSONResponse:
    """Build the ``ErrorMessage`` body used for every failure."""
    return JSONResponse(
        status_code=status_code,
        content=ApiError(ErrorMessage=message).model_dump(),
        headers=headers,
    )


def parse_body(model: type[ModelT], raw: bytes) -> ModelT:
    """Decode a JSON request body into ``model``.

    Raises:
        MalformedPayload: If the body is not valid JSON for the model.
    """
    try:
        return model.model_validate_json(raw or b"null")
    except ValidationError as exc:
        first = exc.errors()[0]
        location = ".".join(str(part) for part in first.get("loc", ())) or "body"
        raise MalformedPayload(f"Invalid request body ({location}): {first.get('msg')}") from exc


def require_credentials(basic: HTTPBasicCredentials | None) -> Credentials:
    if basic is None:
        return Credentials.require(None, None)
    return Credentials.require(basic.username, basic.password)


def events_response(events: list[EventRecord]) -> JSONResponse:
    return JSONResponse(content=[event.model_dump() for event in events], headers=NO_CACHE)


def create_app(
    config: RelayConfig,
    events_dir: str | Path = ".",
    static_dir: str | Path | None = DEFAULT_STATIC_DIR,
    gateway: UpstreamGateway | None = None,
    store: EventStore | None = None,
    lifespan: Callable[[FastAPI], AsyncContextManager] | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Parameters
    ----------
    config:
        Immutable configuration loaded at startup.
    events_dir:
        Directory holding the per-tenant events files. Ignored when ``store``
        is given.
    static_dir:
        Directory served as the fallback for unknown paths. Not mounted when
        ``None`` or missing.
    gateway:
        Upstream client shared by the reconciler and the message relay.
        Defaults to an :class:`UpstreamGateway` with its default timeout.
    store:
        Pre-built event store; defaults to one bounded by
        ``config.max_events_count``.
    lifespan:
        Optional lifespan context manager for startup/shutdown events.

    Returns
    -------
    FastAPI
        A configured application ready to be served by Uvicorn.
    """
    gateway = gateway or UpstreamGateway()
    store = store or EventStore(events_dir, max_events=config.max_events_count)
    reconciler = WebhookReconciler(gateway, config.base_url)
    relay = MessageRelay(gateway, config.base_url)

    api = FastAPI(title=API_TITLE, lifespan=lifespan)
    api.state.config = config
    api.state.store = store
    api.state.reconciler = reconciler
    api.state.relay = relay

    @api.exception_handler(RelayError)
    async def relay_error_handler(request: Request, exc: RelayError):
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, exc.message)
        return error_response(exc.message, exc.status_code)

    @api.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 405:
            message = UnsupportedMethod(request.method).message
        else:
            message = str(exc.detail)
        logger.error("%s %s -> %d %s", request.method, request.url.path, exc.status_code, message)
        return error_response(message, exc.status_code, headers=getattr(exc, "headers", None))

    @api.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        logger.error("Validation error on %s %s: %s", request.method, request.url.path, exc.errors())
        return error_response(f"Invalid request: {exc.errors()}", 400)

    @api.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception("Unexpected error on %s %s", request.method, request.url.path)
        return error_response("Internal server error", 500)

    @api.get("/health")
    async def health():
        """Health check endpoint for container monitoring."""
        return {"status": "ok"}

    @api.get("/config")
    async def get_config():
        return JSONResponse(content=config.model_dump())

    @api.get("/apikey/{apikey}/events")
    async def list_events(apikey: str):
        """Return the tenant's events newest-first, creating an empty log if needed."""
        return events_response(await store.read(apikey))

    @api.post("/apikey/{apikey}/events")
    async def record_event(apikey: str, request: Request):
        """Record one inbound webhook event and return the resulting log."""
        raw = await request.body()
        logger.debug("New event payload received: %s", raw.decode("utf-8", errors="replace"))
        return events_response(await store.append(apikey, raw))

    @api.post("/apikey/{apikey}/events/setup")
    async def setup_event(
        apikey: str,
        request: Request,
        basic: HTTPBasicCredentials | None = Depends(basic_scheme),
    ):
        """Point the upstream callback for an event type at ``CallbackUrl``."""
        raw = await request.body()
        logger.debug("New event setup payload received for %s: %s", apikey, raw.decode("utf-8", errors="replace"))
        payload = parse_body(EventSetupPayload, raw)
        credentials = require_credentials(basic)
        if not payload.EventType:
            raise InvalidRequest("EventType is mandatory")
        if not payload.CallbackUrl:
            raise InvalidRequest("CallbackUrl is mandatory")

        outcome = await reconciler.reconcile(credentials, payload.EventType, payload.CallbackUrl)
        logger.info("Callback for %s %s -> %s", payload.EventType, outcome.value, payload.CallbackUrl)
        return Response(content=raw, media_type="application/json")

    @api.post("/messages")
    async def send_message(
        request: Request,
        basic: HTTPBasicCredentials | None = Depends(basic_scheme),
    ):
        """Relay a send-message request to the upstream send API."""
        raw = await request.body()
        logger.debug("New message payload received: %s", raw.decode("utf-8", errors="replace"))
        payload = parse_body(MessagePayload, raw)
        credentials = require_credentials(basic)
        await relay.send(credentials, payload)
        return Response(content=raw, media_type="application/json", headers=NO_CACHE)

    async def unsupported_method(request: Request):
        raise UnsupportedMethod(request.method)

    for path, allowed in (
        ("/config", {"GET"}),
        ("/apikey/{apikey}/events", {"GET", "POST"}),
        ("/apikey/{apikey}/events/setup", {"POST"}),
        ("/messages", {"POST"}),
    ):
        api.add_api_route(
            path,
            unsupported_method,
            methods=sorted(ALL_METHODS - allowed),
            include_in_schema=False,
        )

    if static_dir is not None and Path(static_dir).is_dir():
        api.mount("/", StaticFiles(directory=static_dir, html=True), name="static")
    elif static_dir is not None:
        logger.warning("Static directory %s not found; static assets disabled", static_dir)

    return api
