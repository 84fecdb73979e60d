import os
import time
import uuid

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from rich.console import Console
from starlette.exceptions import HTTPException as StarletteHTTPException

from socialdl.api import download, health, info
from socialdl.api.deps import get_invoker, get_store
from socialdl.config.settings import CONFIG_PATH, config
from socialdl.core.errors import ExtractorUnavailable, MediaError
from socialdl.core.logging import log_error, log_info, log_warning, request_id_ctx, setup_logging
from socialdl.core.state import state
from socialdl.i18n import i18n
from socialdl.services.sweeper import SweepScheduler

setup_logging(config.logging)
console = Console()

app = FastAPI(
    title=config.api.title,
    description=config.api.description,
    version=config.api.version,
    docs_url="/docs" if config.api.debug else None,
    redoc_url=None
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.api.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
)

# Routes
app.include_router(health.router, prefix=config.api.prefix, tags=["Health"])
app.include_router(info.router, prefix=config.api.prefix, tags=["Info"])
app.include_router(download.router, prefix=config.api.prefix, tags=["Download"])


def translator(request: Request):
    return i18n.translator(request.headers.get("accept-language"))


@app.middleware("http")
async def request_context_middleware(request: Request, call_next):
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    token = request_id_ctx.set(request_id)
    start = time.monotonic()
    try:
        response = await call_next(request)
        elapsed_ms = int((time.monotonic() - start) * 1000)
        log_info(request, f"{request.method} {request.url.path} -> {response.status_code} ({elapsed_ms}ms)")
        response.headers["X-Request-ID"] = request_id
        return response
    finally:
        request_id_ctx.reset(token)


@app.exception_handler(MediaError)
async def media_error_handler(request: Request, exc: MediaError):
    _ = translator(request)
    if exc.status_code >= 500:
        log_error(request, f"{type(exc).__name__}: {exc.detail}")
    else:
        log_warning(request, f"{type(exc).__name__}: {exc.detail}")
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": exc.render(_)}
    )


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"success": False, "error": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    _ = translator(request)
    errors = exc.errors()
    reason = errors[0].get("msg", "") if errors else ""
    return JSONResponse(
        status_code=400,
        content={"success": False, "error": _("error.request_invalid", reason=reason)}
    )


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    _ = translator(request)
    log_error(request, f"Unhandled {type(exc).__name__}: {exc}")
    return JSONResponse(
        status_code=500,
        content={"success": False, "error": _("error.internal")}
    )


@app.on_event("startup")
async def startup_event():
    # Write the default config on first start so operators have something to edit
    config_dir = os.path.dirname(CONFIG_PATH)
    if config_dir and not os.path.exists(config_dir):
        os.makedirs(config_dir, exist_ok=True)
    if not os.path.exists(CONFIG_PATH):
        config.save_to_file(CONFIG_PATH)

    store = get_store()
    invoker = get_invoker()

    try:
        await invoker.resolve_executable()
        console.print(f"[green]✓ yt-dlp {invoker.version} via '{invoker.command}'[/green]")
    except ExtractorUnavailable:
        console.print("[yellow]⚠ yt-dlp not found, downloads will fail until it is installed[/yellow]")

    state.sweeper = SweepScheduler(
        store,
        interval=store.policy.sweep_interval,
        initial_delay=config.storage.initial_sweep_delay_seconds
    )
    state.sweeper.start()
    console.print(f"[green]✓ Staging files in {store.directory}[/green]")


@app.on_event("shutdown")
async def shutdown_event():
    if state.sweeper:
        await state.sweeper.stop()
        state.sweeper = None
    if state.store:
        await state.store.close()
    console.print("[dim]✓ Sweeper stopped[/dim]")


def run() -> None:
    uvicorn.run(
        "socialdl.main:app",
        host=config.api.host,
        port=config.api.port,
        reload=config.api.debug
    )
