"""FastAPI application factory and HTTP controllers.

Controllers are intentionally thin: they hand the parsed request to a
service, render the result as plain text and translate service errors
into HTTP status codes. The store is created once per application and
reaches controllers through the `get_store` dependency.

Endpoints implemented:
- GET /Student/getstudent
- GET /Student/listall
- POST /Student
- DELETE /Student/{year}
- PATCH /Student
- GET /health
"""

from contextlib import asynccontextmanager
from typing import Optional
import json
import logging
import time
import uuid

from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import PlainTextResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import formatters, services
from .config import Settings, settings as default_settings
from .database import open_store
from .repositories import StoreError, StudentStore
from .schemas import StudentRecord

logger = logging.getLogger("roster.api")
router = APIRouter()


def get_store(request: Request) -> StudentStore:
    """FastAPI dependency returning the application's store."""
    return request.app.state.store


def _store_failure(request: Request, action: str, exc: StoreError) -> HTTPException:
    logger.error("%s failed (request_id=%s): %s", action, getattr(request.state, "request_id", "-"), exc)
    return HTTPException(status_code=500, detail=f"Error while {action}. Breaking out.")


@router.get('/Student/getstudent', response_class=PlainTextResponse)
def get_student(request: Request, store: StudentStore = Depends(get_store)):
    """Look up one student per query parameter, e.g. `?name=Mike`.

    Each distinct key is matched independently; keys without a match
    produce a not-found line.
    """
    svc = services.StudentService(store)
    try:
        results = svc.lookup(request.query_params.multi_items())
    except StoreError as e:
        raise _store_failure(request, "finding the student", e)
    return formatters.format_lookup(results)


@router.get('/Student/listall', response_class=PlainTextResponse)
def list_students(request: Request, store: StudentStore = Depends(get_store)):
    """List every student in storage order."""
    svc = services.StudentService(store)
    try:
        records = svc.list_all()
    except StoreError as e:
        raise _store_failure(request, "finding students", e)
    return formatters.format_listing(records)


@router.post('/Student', response_class=PlainTextResponse)
def create_student(request: Request, payload: StudentRecord, store: StudentStore = Depends(get_store)):
    """Add a student unless one with the same netid already exists."""
    svc = services.StudentService(store)
    try:
        added = svc.create(payload)
    except StoreError as e:
        raise _store_failure(request, "adding the student", e)
    if not added:
        return PlainTextResponse(formatters.DUPLICATE, status_code=409)
    return formatters.ADDED


@router.delete('/Student/{year}', response_class=PlainTextResponse)
def delete_students(request: Request, year: str, store: StudentStore = Depends(get_store)):
    """Remove every student whose year is less than or equal to `year`."""
    svc = services.StudentService(store)
    try:
        removed = svc.remove_up_to(year)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=f"Error parsing year to an int: {e}")
    except StoreError as e:
        raise _store_failure(request, "removing students", e)
    return formatters.format_removed(removed)


@router.patch('/Student', response_class=PlainTextResponse)
def normalize_ratings(request: Request, store: StudentStore = Depends(get_store)):
    """Recompute ratings from the class average and list the result."""
    svc = services.RatingService(store)
    try:
        result = svc.normalize()
    except services.PartialUpdateError as e:
        logger.error("normalization aborted (request_id=%s): %s", getattr(request.state, "request_id", "-"), e)
        raise HTTPException(
            status_code=500,
            detail=f"Updating error after {e.applied} of {e.total} ratings were applied. Breaking out.",
        )
    except StoreError as e:
        raise _store_failure(request, "updating ratings", e)
    if result is None:
        return formatters.NO_STUDENTS
    return formatters.format_normalization(result.average, result.records)


@router.get("/health")
def health():
    """Lightweight health check for uptime monitoring."""
    return {"status": "ok"}


async def plain_text_http_error(request: Request, exc: StarletteHTTPException):
    return PlainTextResponse(f"{exc.detail}\n", status_code=exc.status_code, headers=getattr(exc, "headers", None))


async def request_validation_error(request: Request, exc: RequestValidationError):
    problems = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ())[1:]) or "body"
        problems.append(f"{loc}: {err.get('msg')}")
    return PlainTextResponse(f"Error while decoding student: {'; '.join(problems)}\n", status_code=400)


def _request_event(request: Request, started: float, **extra) -> str:
    """JSON line describing `request` for the access log."""
    event = {
        "request_id": getattr(request.state, "request_id", ""),
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((time.perf_counter() - started) * 1000.0, 2),
        "client": request.client.host if request.client else "unknown",
    }
    event.update(extra)
    return json.dumps(event, ensure_ascii=True)


async def request_context_middleware(request: Request, call_next):
    """Tag each request with an id, echo it back and log one line per request."""
    request.state.request_id = request.headers.get("X-Request-ID", uuid.uuid4().hex)
    started = time.perf_counter()
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("request_failed %s", _request_event(request, started))
        raise
    response.headers["X-Request-ID"] = request.state.request_id
    logger.info("request_done %s", _request_event(request, started, status_code=response.status_code))
    return response


def create_app(settings: Optional[Settings] = None, store: Optional[StudentStore] = None) -> FastAPI:
    """Build the application around `store`.

    When no store is given one is opened from `settings` and closed on
    shutdown; a store passed in stays owned by the caller.
    """
    settings = settings or default_settings
    if not logging.getLogger().handlers:
        logging.basicConfig(level=settings.LOG_LEVEL)
    owns_store = store is None
    if store is None:
        store = open_store(settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        if owns_store:
            app.state.store.close()

    app = FastAPI(title="Student Roster API", lifespan=lifespan)
    app.state.store = store
    app.state.settings = settings
    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(StarletteHTTPException, plain_text_http_error)
    app.add_exception_handler(RequestValidationError, request_validation_error)
    app.include_router(router)
    logger.info("store backend: %s", type(store).__name__)
    return app
