import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from browser_control import __version__
from browser_control.browser.control_plane import ControlPlane, build_control_plane
from browser_control.browser.errors import BrowserControlError
from browser_control.browser.settings import ControlPlaneSettings

from .routes import router

logger = logging.getLogger(__name__)


def create_app(
    control_plane: Optional[ControlPlane] = None,
    settings: Optional[ControlPlaneSettings] = None,
) -> FastAPI:
    """
    Build the HTTP surface around a control plane.

    When ``control_plane`` is omitted one is built from ``settings`` (or the
    environment) at startup. Every registry entry is closed on shutdown; the
    session records are left untouched so another process can reattach.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if getattr(app.state, "control_plane", None) is None:
            app.state.control_plane = build_control_plane(settings)
        logger.info("Browser control server is ready to receive requests.")
        try:
            yield
        finally:
            logger.info("Shutting down the browser control server.")
            await app.state.control_plane.shutdown()
            logger.info("Browser control server shut down gracefully.")

    app = FastAPI(title="Browser Control", version=__version__, lifespan=lifespan)
    app.state.control_plane = control_plane

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(BrowserControlError)
    async def browser_control_error_handler(request: Request, exc: BrowserControlError) -> JSONResponse:
        logger.info("Request failed path=%s code=%s error=%s", request.url.path, exc.code, exc)
        return JSONResponse(
            {"success": False, "error": str(exc), "code": exc.code},
            status_code=exc.status_code,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        messages = "; ".join(str(error.get("msg")) for error in exc.errors())
        return JSONResponse(
            {"success": False, "error": f"Invalid request: {messages}", "code": "invalid_request"},
            status_code=400,
        )

    app.include_router(router)
    return app
