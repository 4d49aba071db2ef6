from __future__ import annotations

import time
from typing import Optional

import httpx
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse, Response

from loan_portal.auth.dependencies import GatePending, GateRedirect
from loan_portal.configs.settings import Settings, get_settings
from loan_portal.errors import AppError, UnauthorizedError
from loan_portal.routers.admin_router import router as admin_router
from loan_portal.routers.auth_router import router as auth_router
from loan_portal.routers.health_router import router as health_router
from loan_portal.routers.ticket_router import router as ticket_router
from loan_portal.routers.vault_router import router as vault_router
from loan_portal.routers.view_router import router as view_router
from loan_portal.services.portal_session import SessionRegistry, StorageFactory
from loan_portal.utils.response import failure
from loan_portal.configs.logging_config import get_logger, setup_logging

log = get_logger(__name__)


def _cors_origins(settings: Settings) -> list[str]:
    # .env can provide a comma-separated string
    raw_origins = settings.CORS_ORIGINS
    if isinstance(raw_origins, str):
        return [o.strip() for o in raw_origins.split(",") if o.strip()]
    if isinstance(raw_origins, (list, tuple, set)):
        return list(raw_origins)
    return []


def _sync_session_cookie(request: Request, response: Response, settings: Settings) -> None:
    """Issue, rotate or clear the browser cookie to match the resolved portal session."""
    session = getattr(request.state, "portal_session", None)
    if session is None:
        return
    name = settings.session_cookie_name
    sent = request.cookies.get(name)
    if session.ended:
        if sent:
            response.delete_cookie(name)
        return
    if session.session_id != sent:
        response.set_cookie(
            name,
            session.session_id,
            httponly=True,
            secure=settings.session_cookie_secure,
            samesite="lax",
        )


def create_app(
    settings: Optional[Settings] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    storage_factory: Optional[StorageFactory] = None,
) -> FastAPI:
    settings = settings or get_settings()
    app = FastAPI(title="loan_portal", version="0.1.0")
    app.dependency_overrides[get_settings] = lambda: settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=_cors_origins(settings),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    http = http_client or httpx.AsyncClient(timeout=settings.api_timeout_seconds)
    registry = SessionRegistry.from_settings(settings, http, storage_factory)
    app.state.settings = settings
    app.state.http_client = http
    app.state.session_registry = registry

    @app.middleware("http")
    async def request_logging_middleware(request: Request, call_next):
        start = time.perf_counter()
        method = request.method
        path = request.url.path
        request_id = request.headers.get("x-request-id") or request.headers.get("x-correlation-id")

        log.info("request.start method=%s path=%s request_id=%s", method, path, request_id)
        response = None
        try:
            response = await call_next(request)
            _sync_session_cookie(request, response, settings)
        finally:
            elapsed_ms = int((time.perf_counter() - start) * 1000)
            log.info(
                "request.end method=%s path=%s status=%s request_id=%s elapsed_ms=%s",
                method,
                path,
                getattr(response, "status_code", "unknown"),
                request_id,
                elapsed_ms,
            )
        return response

    app.include_router(health_router)
    app.include_router(view_router)
    app.include_router(auth_router)
    app.include_router(vault_router)
    app.include_router(admin_router)
    app.include_router(ticket_router)

    @app.exception_handler(GateRedirect)
    async def gate_redirect_handler(_: Request, exc: GateRedirect) -> RedirectResponse:
        return RedirectResponse(exc.location, status_code=303)

    @app.exception_handler(GatePending)
    async def gate_pending_handler(_: Request, __: GatePending) -> JSONResponse:
        return JSONResponse(status_code=202, content={"status": "loading"})

    @app.exception_handler(UnauthorizedError)
    async def unauthorized_handler(request: Request, exc: UnauthorizedError) -> RedirectResponse:
        # never shown to the user: the session is ended and the browser sent to login
        session = getattr(request.state, "portal_session", None)
        if session is not None:
            session.identity.force_logout()
            session.reset_views()
            registry.end(session)
        log.info("request.unauthorized path=%s remote_status=%s", request.url.path, exc.remote_status)
        return RedirectResponse(settings.login_path, status_code=303)

    @app.exception_handler(AppError)
    async def app_error_handler(_: Request, exc: AppError) -> JSONResponse:
        log.info("request.error type=app_error status=%s message=%s", exc.http_status, exc.message)
        return JSONResponse(status_code=exc.http_status, content=failure(exc.message))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(_: Request, exc: Exception) -> JSONResponse:
        log.exception("Unhandled error: %s", str(exc))
        return JSONResponse(status_code=500, content=failure("internal server error"))

    @app.on_event("startup")
    async def startup() -> None:
        setup_logging(settings.LOG_LEVEL, service_name=settings.SERVICE_NAME)
        log.info(
            "startup service=%s env=%s api=%s token_storage=%s",
            settings.SERVICE_NAME,
            settings.ENVIRONMENT,
            settings.api_base_url,
            settings.token_storage,
        )

    @app.on_event("shutdown")
    async def shutdown() -> None:
        log.info("shutdown.begin")
        await http.aclose()
        log.info("shutdown.done")

    return app


app = create_app()
