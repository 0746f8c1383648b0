from typing import Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse, PlainTextResponse, RedirectResponse, Response

from st_spotify.application import schema_service
from st_spotify.application.exceptions import (
    AuthorizationError,
    CredentialStoreError,
    RefreshError,
    UnauthorizedError,
)
from st_spotify.application.token_lifecycle import TokenLifecycleManager
from st_spotify.infrastructure.di_container import get_container
from st_spotify.infrastructure.log_utils import log_message
from st_spotify.infrastructure.spotify_client import ProviderError
from st_spotify.utils.formatters import format_long_datetime

app = FastAPI(title="SmartThings Spotify bridge")


def get_token_manager() -> TokenLifecycleManager:
    """Process-wide lifecycle manager over the configured credential file."""
    return get_container().resolve(TokenLifecycleManager)


def _provider_payload(body: Any) -> Response:
    if body is None:
        return Response(status_code=200)
    return JSONResponse(body)


# --- Error translation ---

@app.exception_handler(AuthorizationError)
async def authorization_error_handler(request: Request, exc: AuthorizationError):
    return JSONResponse(status_code=400, content={"detail": str(exc)})


@app.exception_handler(UnauthorizedError)
async def unauthorized_error_handler(request: Request, exc: UnauthorizedError):
    return JSONResponse(status_code=401, content={"detail": "Unauthorized"})


@app.exception_handler(RefreshError)
async def refresh_error_handler(request: Request, exc: RefreshError):
    log_message(f"Refresh token rejected on {request.url.path}: {exc}", "WARN")
    return JSONResponse(
        status_code=401,
        content={"detail": "Spotify refused the stored refresh token; log in again via /login"},
    )


@app.exception_handler(CredentialStoreError)
async def credential_store_error_handler(request: Request, exc: CredentialStoreError):
    log_message(f"Credential store failure on {request.url.path}: {exc}", "ERROR")
    return JSONResponse(status_code=500, content={"detail": str(exc)})


@app.exception_handler(ProviderError)
async def provider_error_handler(request: Request, exc: ProviderError):
    log_message(f"Spotify call failed on {request.url.path}: {exc}", "WARN")
    status_code = exc.status_code if exc.status_code and exc.status_code >= 400 else 502
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


# --- Routes ---

@app.get("/ping")
def ping():
    return PlainTextResponse("pong")


@app.get("/login")
def login(manager: TokenLifecycleManager = Depends(get_token_manager)):
    """Send the user to Spotify's consent page."""
    return RedirectResponse(manager.authorize_url(), status_code=302)


@app.get("/callback")
def callback(
    code: str | None = Query(None),
    manager: TokenLifecycleManager = Depends(get_token_manager),
):
    """Authorization callback: exchange ``code`` and store the credential."""
    if not code:
        raise HTTPException(status_code=400, detail="Bad request")

    manager.complete_authorization(code)
    return PlainTextResponse("Logged in")


@app.get("/refresh")
def refresh(manager: TokenLifecycleManager = Depends(get_token_manager)):
    status = manager.ensure_fresh_token()
    if status.refreshed:
        return PlainTextResponse("Token refreshed")
    return PlainTextResponse(f"Token is still valid. Expires at {format_long_datetime(status.safe_expiry)}")


@app.get("/playlists")
def playlists(manager: TokenLifecycleManager = Depends(get_token_manager)):
    return _provider_payload(manager.authorized_client().get_user_playlists())


@app.get("/devices")
def devices(manager: TokenLifecycleManager = Depends(get_token_manager)):
    return _provider_payload(manager.authorized_client().get_my_devices())


@app.get("/play")
def play(
    device_id: str | None = Query(None),
    context_uri: str | None = Query(None),
    manager: TokenLifecycleManager = Depends(get_token_manager),
):
    """Start playing ``context_uri`` on ``device_id``."""
    if not device_id:
        raise HTTPException(status_code=400, detail="Missing device_id")
    if not context_uri:
        raise HTTPException(status_code=400, detail="Missing context_uri")

    client = manager.authorized_client()
    return _provider_payload(client.play(device_id=device_id, context_uri=context_uri))


@app.get("/pause")
def pause(
    device_id: str | None = Query(None),
    manager: TokenLifecycleManager = Depends(get_token_manager),
):
    if not device_id:
        raise HTTPException(status_code=400, detail="Missing device_id")

    return _provider_payload(manager.authorized_client().pause(device_id=device_id))


@app.post("/smartthings")
async def smartthings(request: Request, manager: TokenLifecycleManager = Depends(get_token_manager)):
    """
    ST Schema webhook. Every request gets a reply: SmartThings treats a
    missing response as a failure, so errors come back as ``globalError``
    payloads with HTTP 200.
    """
    try:
        body = await request.json()
    except ValueError:
        log_message("ST Schema request body was not valid JSON.", "WARN")
        body = None

    fallback_request_id = request.headers.get("requestId") or request.headers.get("x-request-id")
    payload = await run_in_threadpool(
        schema_service.handle_request,
        body,
        manager,
        fallback_request_id=fallback_request_id,
    )
    return JSONResponse(payload)
