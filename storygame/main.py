import logging
import os
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load environment variables BEFORE any other imports
load_dotenv()
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from storygame.config import Settings, configure_logging
from storygame.game import router as game_router
from storygame.generation import MEDIA_ROUTE, build_client
from storygame.scenes import SceneGenerator
from storygame.sessions import SessionRegistry

logger = logging.getLogger(__name__)

STATIC_DIR = Path(__file__).parent / "static"


def build_registry(settings: Settings) -> SessionRegistry:
    generator = SceneGenerator(build_client(settings))
    return SessionRegistry(generator, ttl_seconds=settings.session_ttl_seconds)


def create_app(settings: Optional[Settings] = None, registry: Optional[SessionRegistry] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="AI Story Game")
    app.state.settings = settings
    app.state.registry = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.on_event("startup")
    async def startup():
        # fail fast when the provider credential is missing
        if app.state.registry is None:
            app.state.registry = build_registry(settings)
        os.makedirs(settings.media_dir, exist_ok=True)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        logger.warning("Rejected request to %s: %s", request.url.path, exc.errors())
        return JSONResponse(
            status_code=422,
            content={"error": "Invalid request"},
        )

    @app.get("/health")
    async def health_check():
        return {"status": "healthy", "message": "AI Story Game", "provider": settings.provider}

    app.include_router(game_router, prefix="/api/game")
    app.mount(MEDIA_ROUTE, StaticFiles(directory=settings.media_dir, check_dir=False), name="media")
    # last, so the API routes above take precedence
    app.mount("/", StaticFiles(directory=STATIC_DIR, html=True), name="static")
    return app


app = create_app()


def run() -> None:
    import uvicorn

    settings = app.state.settings
    logger.info("Server running on http://localhost:%s", settings.port)
    uvicorn.run(app, host=settings.host, port=settings.port)


if __name__ == "__main__":
    run()
