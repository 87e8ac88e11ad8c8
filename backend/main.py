from fastapi import Depends, FastAPI, WebSocket
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from contextlib import asynccontextmanager
from typing import Optional
from api import sounds, playback
from config.app_config import AppConfig, load_config
from database import create_db_engine, create_session_factory
from dependencies import get_notifier
from exceptions import ConfigurationError
from init_db import init_database
from services.audio_sinks import create_sink
from services.change_notifier import ChangeNotifier, websocket_endpoint
from services.clip_registry import ClipRegistry
from services.decode_supervisor import DecodeSupervisor
from services.interfaces import AudioSink
from services.playback_orchestrator import PlaybackOrchestrator
import logging
from logging.handlers import RotatingFileHandler
import sys
from pathlib import Path

logger = logging.getLogger(__name__)


def configure_logging(log_dir: Path, level: int = logging.INFO):
    """
    Log to a rotating file in log_dir and to stdout.

    Safe to call again (each app startup): handlers from a previous call are
    replaced, not duplicated.
    """
    log_dir.mkdir(parents=True, exist_ok=True)
    log_file = log_dir / "soundboard.log"

    log_formatter = logging.Formatter('%(asctime)s - %(name)s - %(levelname)s - %(message)s')

    # File handler with rotation (10MB per file, keep 5 backups)
    file_handler = RotatingFileHandler(
        log_file,
        maxBytes=10 * 1024 * 1024,  # 10MB
        backupCount=5,
        encoding='utf-8'
    )
    file_handler.setFormatter(log_formatter)
    file_handler.setLevel(level)

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setFormatter(log_formatter)
    console_handler.setLevel(level)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        if getattr(handler, "soundboard_handler", False):
            root_logger.removeHandler(handler)
            handler.close()

    for handler in (file_handler, console_handler):
        handler.soundboard_handler = True
        root_logger.addHandler(handler)
    root_logger.setLevel(level)

    logger.info(f"Logging initialized: {log_file}")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the registry, notifier and orchestrator; tear them down on shutdown"""
    config: AppConfig = app.state.config
    configure_logging(config.log_dir)

    logger.info("Starting soundboard services...")
    config.sound_dir.mkdir(parents=True, exist_ok=True)

    engine = create_db_engine(config.database_url)
    init_database(engine)

    registry = ClipRegistry(config.sound_dir, create_session_factory(engine))
    registry.load()
    missing = registry.find_missing()
    if missing:
        # Only reported here; playback re-checks each file when it is requested
        logger.warning(f"⚠️  {len(missing)} clip(s) reference missing files: {', '.join(c.name for c in missing)}")

    notifier = ChangeNotifier(registry.snapshot)
    registry.add_listener(notifier.broadcast)

    supervisor = app.state.supervisor or DecodeSupervisor()
    try:
        logger.info(f"Decoder binary: {supervisor.ffmpeg_path}")
    except ConfigurationError as e:
        logger.error(f"❌ {e.message} - play requests will fail until this is fixed")

    sink = app.state.sink or create_sink(config.sink_backend, config.audio_device)
    orchestrator = PlaybackOrchestrator(registry, supervisor, sink)

    app.state.registry = registry
    app.state.notifier = notifier
    app.state.orchestrator = orchestrator

    logger.info(f"Application startup complete - {type(sink).__name__} sink, sounds in {config.sound_dir}")

    yield

    logger.info("Stopping soundboard services...")
    await orchestrator.shutdown()
    await notifier.close()
    engine.dispose()
    logger.info("Application shutdown complete")


def create_app(
    config: Optional[AppConfig] = None,
    sink: Optional[AudioSink] = None,
    supervisor: Optional[DecodeSupervisor] = None,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        config: Settings; loaded from the environment if omitted
        sink: Audio sink to use instead of the configured backend
        supervisor: Decode supervisor to use instead of the ffmpeg default
    """
    config = config or load_config()

    app = FastAPI(
        title="Soundboard API",
        description="Shared soundboard: upload clips and play them into a live audio stream",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.config = config
    app.state.sink = sink
    app.state.supervisor = supervisor

    # Allow all origins so phones on the LAN can use the board
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(sounds.router, tags=["sounds"])
    app.include_router(playback.router, tags=["playback"])

    @app.websocket("/ws")
    async def websocket_route(websocket: WebSocket, notifier: ChangeNotifier = Depends(get_notifier)):
        """WebSocket endpoint for registry updates"""
        await websocket_endpoint(websocket, notifier)

    @app.get("/api/health")
    def health_check():
        """Health check endpoint"""
        return {
            "status": "ok",
            "service": "Soundboard API",
            "version": "1.0.0"
        }

    # Mount the static frontend last so API routes take precedence
    if config.public_dir.is_dir():
        logger.info(f"Frontend path found: {config.public_dir}")
        app.mount("/", StaticFiles(directory=str(config.public_dir), html=True), name="frontend")
    else:
        @app.get("/")
        def root():
            """Root endpoint - API only mode"""
            return {
                "message": "Soundboard API",
                "docs": "/docs",
                "health": "/api/health",
                "note": "Frontend not available - running in API-only mode"
            }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    config = app.state.config
    logger.info(f"🚀 Starting soundboard on http://{config.host}:{config.port}...")
    uvicorn.run(app, host=config.host, port=config.port)
