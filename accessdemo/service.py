"""HTTP service exposing the vulnerable and secure user APIs side by side."""

from __future__ import annotations

import logging
import time
from typing import Dict, List, Optional

from fastapi import Depends, FastAPI, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .audit import AuditTrail
from .config import Settings, resolve_seed_data
from .database import Database, resolve_database_path
from .errors import AuthenticationFailed, ServiceError
from .policy import AccessDenied, PolicyGuard
from .schemas import ErrorResponse, LoginRequest, LoginResponse
from .secure import build_secure_router
from .security import CredentialVerifier
from .seed import seed_database
from .sessions import SessionManager
from .users import UserService
from .vulnerable import build_vulnerable_router

logger = logging.getLogger("accessdemo.service")


def _error_body(error: str, message: str) -> Dict[str, str]:
    return {"error": error, "message": message}


def _validation_fields(exc: RequestValidationError) -> Dict[str, str]:
    fields: Dict[str, str] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part != "body"]
        key = ".".join(location) or "body"
        fields.setdefault(key, str(error.get("msg", "invalid value")))
    return fields


def _challenge_headers(status_code: int) -> Optional[Dict[str, str]]:
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return {"WWW-Authenticate": "Basic"}
    return None


def register_exception_handlers(app: FastAPI) -> None:
    """Map policy rejections and service errors to ``{error, message}`` bodies."""

    @app.exception_handler(AccessDenied)
    async def handle_access_denied(_: Request, exc: AccessDenied) -> JSONResponse:
        decision = exc.decision
        return JSONResponse(
            status_code=decision.status_code,
            content=_error_body(decision.title, decision.message),
            headers=_challenge_headers(decision.status_code),
        )

    @app.exception_handler(ServiceError)
    async def handle_service_error(_: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(exc.title, str(exc)),
            headers=_challenge_headers(exc.status_code),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(_: Request, exc: RequestValidationError) -> JSONResponse:
        body = _error_body("Validation failed", "The request payload is invalid")
        return JSONResponse(
            status_code=422,
            content={**body, "fields": _validation_fields(exc)},
        )


def register_auth_routes(
    app: FastAPI,
    database: Database,
    sessions: SessionManager,
) -> None:
    bearer_security = HTTPBearer(auto_error=False)

    @app.post(
        "/auth/login",
        response_model=LoginResponse,
        responses={401: {"model": ErrorResponse}},
        tags=["auth"],
    )
    def login(payload: LoginRequest) -> LoginResponse:
        user = database.authenticate_user(payload.email, payload.password)
        if user is None:
            logger.warning("Failed login attempt for %s", payload.email)
            raise AuthenticationFailed()
        token = sessions.issue(user.id)
        logger.info("User %s signed in", user.id)
        return LoginResponse(token=token, expires_in=sessions.expires_in)

    @app.post("/auth/logout", status_code=status.HTTP_204_NO_CONTENT, tags=["auth"])
    async def logout(
        bearer: HTTPAuthorizationCredentials | None = Depends(bearer_security),
    ) -> Response:
        if bearer is not None and sessions.revoke(bearer.credentials):
            logger.info("Session revoked")
        return Response(status_code=status.HTTP_204_NO_CONTENT)


def register_diagnostic_routes(app: FastAPI, seed_emails: List[str]) -> None:
    @app.get("/healthz")
    async def healthcheck() -> Dict[str, str]:
        return {"status": "ok"}

    @app.get("/test", tags=["diagnostics"])
    async def test_status(request: Request) -> Dict[str, object]:
        base = str(request.base_url).rstrip("/")
        return {
            "status": "OK",
            "message": "Application is running",
            "timestamp": int(time.time() * 1000),
            "endpoints": {
                "vulnerable": f"{base}/vulnerable/users",
                "secure": f"{base}/secure/users",
            },
        }

    @app.get("/test/info", tags=["diagnostics"])
    async def test_info() -> Dict[str, object]:
        return {
            "project": "Broken Access Control Demo",
            "purpose": "OWASP A01:2021 demonstration",
            "users": seed_emails,
        }


def create_app(
    *,
    database: Database | None = None,
    settings: Settings | None = None,
    sessions: SessionManager | None = None,
    include_vulnerable: bool | None = None,
) -> FastAPI:
    """Instantiate the FastAPI application with both API surfaces."""

    settings = settings or Settings.from_env()

    db = database or Database(resolve_database_path(settings.database_path))
    db.initialize()

    seed = resolve_seed_data(settings)
    if settings.seed_on_start:
        seed_database(db, seed)

    session_manager = sessions or SessionManager(
        idle_timeout=settings.session_idle_timeout,
        max_lifetime=settings.session_max_lifetime,
    )
    service = UserService(db)
    audit = AuditTrail(db)
    verifier = CredentialVerifier(db, session_manager)
    guard = PolicyGuard(verifier, audit)

    app = FastAPI(
        title="Broken Access Control Demo",
        version="1.0.0",
        description="Vulnerable and secure implementations of the same user-management API.",
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_origins),
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.state.database = db
    app.state.service = service
    app.state.audit = audit
    app.state.session_manager = session_manager

    register_exception_handlers(app)
    register_auth_routes(app, db, session_manager)
    register_diagnostic_routes(app, [account.email for account in seed.users])

    app.include_router(build_secure_router(service, guard, audit))

    if include_vulnerable is None:
        include_vulnerable = settings.include_vulnerable
    if include_vulnerable:
        logger.warning(
            "Vulnerable endpoints are mounted under /vulnerable. Never expose this"
            " service outside a lab environment."
        )
        app.include_router(build_vulnerable_router(service))

    return app


__all__ = [
    "create_app",
    "register_auth_routes",
    "register_diagnostic_routes",
    "register_exception_handlers",
]
