"""FastAPI application serving the EventHub website API."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as pkg_version
from pathlib import Path
import tomllib
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Query, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.openapi.utils import get_openapi
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from sqlalchemy.exc import ArgumentError
from sqlalchemy.orm import Session, sessionmaker
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import require_website_api_key
from .config import Settings, settings as default_settings
from .database import create_db_engine, create_session_factory
from .errors import (
    ErrorCode,
    NotConfiguredError,
    PublicApiError,
    UnauthorizedError,
)
from .listing import (
    EventListQuery,
    get_public_event,
    get_public_event_by_slug,
    list_event_types,
    list_public_events,
    list_venues,
)
from .publishing import PublicEvent, PublicVenue

# Use uvicorn's error logger so messages get the level prefix in the default log
# format (needed for downstream filtering like Loki).
logger = logging.getLogger("uvicorn.error")

NO_STORE = "no-store"
LIST_CACHE = "private, max-age=30, stale-while-revalidate=300"
DETAIL_CACHE = "private, max-age=60, stale-while-revalidate=300"
REFERENCE_CACHE = "private, max-age=300, stale-while-revalidate=3600"


def _load_app_version() -> str:
    """Return the current package version, falling back to pyproject for dev runs."""
    try:
        return pkg_version("eventhub")
    except PackageNotFoundError:
        pyproject_path = Path(__file__).resolve().parent.parent / "pyproject.toml"
        if pyproject_path.exists():
            data = tomllib.loads(pyproject_path.read_text())
            project = data.get("project") or {}
            return str(project.get("version") or "dev")
    return "dev"


APP_VERSION = _load_app_version()


class _Envelope(BaseModel):
    """Response envelopes; used to document the API schema only."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ErrorBody(_Envelope):
    code: ErrorCode
    message: str
    details: Any = None


class ErrorResponse(_Envelope):
    error: ErrorBody


class HealthResponse(_Envelope):
    ok: bool


class EventListMeta(_Envelope):
    next_cursor: str | None


class EventListResponse(_Envelope):
    data: list[PublicEvent]
    meta: EventListMeta


class EventResponse(_Envelope):
    data: PublicEvent


class SlugMeta(_Envelope):
    requested_slug: str
    canonical_slug: str
    is_canonical: bool


class EventBySlugResponse(_Envelope):
    data: PublicEvent
    meta: SlugMeta


class VenueListResponse(_Envelope):
    data: list[PublicVenue]


class EventTypeItem(_Envelope):
    id: str
    label: str
    created_at: str | None


class EventTypeListResponse(_Envelope):
    data: list[EventTypeItem]


def _documented(model: type[BaseModel], *error_statuses: int) -> dict[int, Any]:
    responses: dict[int, Any] = {200: {"model": model}}
    for status_code in error_statuses:
        responses[status_code] = {"model": ErrorResponse}
    return responses


def build_openapi_schema(app: FastAPI) -> dict[str, Any]:
    """Return the cached OpenAPI document with the bearer API-key scheme."""
    if app.openapi_schema:
        return app.openapi_schema
    schema = get_openapi(
        title=app.title,
        version=app.version,
        description="Read-only access to publicly visible EventHub events.",
        routes=app.routes,
    )
    components = schema.setdefault("components", {})
    components["securitySchemes"] = {
        "bearerAuth": {"type": "http", "scheme": "bearer", "bearerFormat": "API key"}
    }
    schema["security"] = [{"bearerAuth": []}]
    app.openapi_schema = schema
    return schema


def _error_response(
    status_code: int,
    code: ErrorCode,
    message: str,
    details=None,
    headers: dict[str, str] | None = None,
) -> JSONResponse:
    error = {"code": code.value, "message": message}
    if details is not None:
        error["details"] = details
    response_headers = {"cache-control": NO_STORE}
    response_headers.update(headers or {})
    return JSONResponse(
        {"error": error}, status_code=status_code, headers=response_headers
    )


def _cached(response: Response, policy: str) -> None:
    response.headers["cache-control"] = policy


def get_db(request: Request):
    factory: sessionmaker[Session] | None = request.app.state.session_factory
    if factory is None:
        raise NotConfiguredError("Database is not configured")
    db = factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


router = APIRouter(
    prefix="/api/v1",
    dependencies=[Depends(require_website_api_key)],
    responses={
        401: {"model": ErrorResponse},
        500: {"model": ErrorResponse},
        503: {"model": ErrorResponse},
    },
)


@router.get("/health", responses=_documented(HealthResponse))
def api_health(response: Response):
    _cached(response, NO_STORE)
    return {"ok": True}


@router.get("/events", responses=_documented(EventListResponse, 400))
def api_list_events(
    response: Response,
    limit: int | None = Query(None),
    cursor: str | None = Query(None),
    start_from: str | None = Query(None, alias="from"),
    start_to: str | None = Query(None, alias="to"),
    ends_after: str | None = Query(None, alias="endsAfter"),
    updated_since: str | None = Query(None, alias="updatedSince"),
    venue_id: str | None = Query(None, alias="venueId"),
    event_type: str | None = Query(None, alias="eventType"),
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    query = EventListQuery.from_params(
        limit=limit,
        default_limit=settings.default_page_limit,
        max_limit=settings.max_page_limit,
        cursor=cursor,
        start_from=start_from,
        start_to=start_to,
        ends_after=ends_after,
        updated_since=updated_since,
        venue_id=venue_id,
        event_type=event_type,
    )
    page = list_public_events(db, query, asset_base_url=settings.asset_base_url)
    _cached(response, LIST_CACHE)
    return page.to_json()


@router.get(
    "/events/by-slug/{slug}", responses=_documented(EventBySlugResponse, 400, 404)
)
def api_get_event_by_slug(
    slug: str,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    lookup = get_public_event_by_slug(db, slug, asset_base_url=settings.asset_base_url)
    _cached(response, DETAIL_CACHE)
    return lookup.to_json()


@router.get("/events/{event_id}", responses=_documented(EventResponse, 400, 404))
def api_get_event(
    event_id: str,
    response: Response,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
):
    event = get_public_event(db, event_id, asset_base_url=settings.asset_base_url)
    _cached(response, DETAIL_CACHE)
    return {"data": event.to_json()}


@router.get("/venues", responses=_documented(VenueListResponse))
def api_list_venues(response: Response, db: Session = Depends(get_db)):
    venues = list_venues(db)
    _cached(response, REFERENCE_CACHE)
    return {"data": venues}


@router.get("/event-types", responses=_documented(EventTypeListResponse))
def api_list_event_types(response: Response, db: Session = Depends(get_db)):
    event_types = list_event_types(db)
    _cached(response, REFERENCE_CACHE)
    return {"data": event_types}


@router.get("/openapi", include_in_schema=False)
def api_openapi(request: Request, response: Response):
    _cached(response, NO_STORE)
    return build_openapi_schema(request.app)


async def public_api_error_handler(request: Request, exc: PublicApiError):
    if exc.status_code >= 500:
        logger.error(
            "Public API error on %s %s: %s",
            request.method,
            request.url.path,
            exc.code.value,
        )
    headers = {"cache-control": NO_STORE}
    if isinstance(exc, UnauthorizedError):
        headers["www-authenticate"] = "Bearer"
    return JSONResponse(exc.to_payload(), status_code=exc.status_code, headers=headers)


async def validation_error_handler(request: Request, exc: RequestValidationError):
    return _error_response(
        400,
        ErrorCode.INVALID_REQUEST,
        "Invalid query parameters",
        jsonable_encoder(exc.errors()),
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code = ErrorCode.NOT_FOUND if exc.status_code == 404 else ErrorCode.INVALID_REQUEST
    message = exc.detail if isinstance(exc.detail, str) else "Request failed"
    return _error_response(exc.status_code, code, message, headers=exc.headers)


async def generic_exception_handler(request: Request, exc: Exception):
    """Gracefully handle unexpected errors."""
    logger.exception(
        "Unhandled error while processing %s %s", request.method, request.url.path
    )
    return _error_response(500, ErrorCode.INTERNAL_ERROR, "Internal server error")


def _default_session_factory(settings: Settings) -> sessionmaker[Session] | None:
    try:
        return create_session_factory(create_db_engine(settings.database_url))
    except (ArgumentError, ImportError):
        logger.error("Database URL is not usable; the website API will return 503")
        return None


def create_app(
    *,
    settings: Settings | None = None,
    session_factory: sessionmaker[Session] | None = None,
) -> FastAPI:
    """Build the application with explicit settings and storage.

    When no session factory is passed one is built from ``settings.database_url``.
    """
    settings = settings or default_settings
    owns_engine = session_factory is None
    if owns_engine:
        session_factory = _default_session_factory(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info("EventHub website API %s starting", APP_VERSION)
        try:
            yield
        finally:
            factory = app.state.session_factory
            if owns_engine and factory is not None:
                factory.kw["bind"].dispose()

    # The schema is only served behind the API key, from /api/v1/openapi.
    app = FastAPI(
        title="EventHub Website API",
        version=APP_VERSION,
        lifespan=lifespan,
        openapi_url=None,
        docs_url=None,
        redoc_url=None,
    )
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.add_exception_handler(PublicApiError, public_api_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, generic_exception_handler)
    app.include_router(router)
    return app


app = create_app()
