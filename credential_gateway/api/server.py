from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Optional

from fastapi import APIRouter, Body, Cookie, Depends, FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from credential_gateway import __version__
from credential_gateway.config import DEV_TOKEN_SECRET, Config, load_config
from credential_gateway.db import init_db

from credential_gateway.auth import get_current_account
from credential_gateway.auth.crud import SqlUserStore
from credential_gateway.auth.deps import get_gateway
from credential_gateway.auth.gateway import (
    ACCESS_TOKEN_COOKIE,
    MSG_VALIDATION_FAILED,
    CredentialGateway,
    UserStore,
)


def _debug(msg: str) -> None:
    print(f"[api] {msg}")


router = APIRouter()


# -----------------------------
# Health
# -----------------------------


@router.get("/health")
def health() -> Dict[str, Any]:
    return {"status": "ok"}


# -----------------------------
# Auth
# -----------------------------
# Bodies are taken as raw JSON so schema failures come back as the gateway's
# 400 "validation failed" rather than FastAPI's 422.


@router.post("/auth/register")
def auth_register(
    response: Response,
    payload: Any = Body(None),
    gateway: CredentialGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    return gateway.register(payload, response)


@router.post("/auth/login")
def auth_login(
    response: Response,
    payload: Any = Body(None),
    gateway: CredentialGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    return gateway.login(payload, response)


@router.post("/auth/logout")
def auth_logout(response: Response, gateway: CredentialGateway = Depends(get_gateway)) -> Dict[str, Any]:
    """Clear the session cookie. Safe to call without one."""
    return gateway.logout(response)


@router.get("/auth/verify")
def auth_verify(
    response: Response,
    access_token: Optional[str] = Cookie(None, alias=ACCESS_TOKEN_COOKIE),
    gateway: CredentialGateway = Depends(get_gateway),
) -> Dict[str, Any]:
    return gateway.verify(access_token, response)


@router.get("/auth/me")
def auth_me(account: Dict[str, Any] = Depends(get_current_account)) -> Dict[str, Any]:
    return {"user": account}


# -----------------------------
# App
# -----------------------------


def _install_error_handlers(app: FastAPI) -> None:
    # Every error body from this service is {"message": ...}.

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content={"message": exc.detail},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # Malformed JSON bodies land here.
        return JSONResponse(status_code=400, content={"message": MSG_VALIDATION_FAILED})


def create_app(cfg: Optional[Config] = None, store: Optional[UserStore] = None) -> FastAPI:
    """Build the API. Without an explicit store, accounts live in cfg.DB_DSN."""
    cfg = cfg or load_config()
    owns_db = store is None
    if store is None:
        store = SqlUserStore(cfg.DB_DSN)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        if owns_db:
            init_db(cfg.DB_DSN)
        if cfg.PRODUCTION and cfg.TOKEN_SECRET == DEV_TOKEN_SECRET:
            _debug("WARNING: running in production with the development TOKEN_SECRET")
        yield

    app = FastAPI(title="Credential Gateway", version=__version__, lifespan=lifespan)
    app.state.cfg = cfg
    app.state.gateway = CredentialGateway(cfg, store)

    # SameSite=None cookies only travel cross-site with credentialed CORS.
    cors_origins = [o.strip() for o in (cfg.CORS_ALLOW_ORIGINS or "").split(",") if o.strip()]
    if cors_origins:
        app.add_middleware(
            CORSMiddleware,
            allow_origins=cors_origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    _install_error_handlers(app)
    app.include_router(router)
    return app


app = create_app()
