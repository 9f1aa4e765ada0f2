# =======================================================================================
# access_station/main.py - FastAPI Application Entry Point
# =======================================================================================
import asyncio
import logging
from typing import Optional

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.exc import SQLAlchemyError

from . import __version__
from .api.routes.dashboard import router as dashboard_router
from .api.routes.enrollment import router as enrollment_router
from .api.routes.session import router as session_router
from .api.routes.sync import router as sync_router
from .api.routes.users import router as users_router
from .config import config
from .models.schemas import HealthResponse, Notification
from .station import Station

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=logging.DEBUG if config.API_DEBUG else logging.INFO,
        format="%(asctime)s %(levelname)-7s %(name)s: %(message)s",
    )


def create_app(station: Optional[Station] = None) -> FastAPI:
    """Build the API. A prebuilt station is used as-is (tests); otherwise one is built on startup."""
    app = FastAPI(
        title="NFC Access Station API",
        version=__version__,
        description="Single-door NFC access control station",
        debug=config.API_DEBUG,
    )
    app.state.station = station

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Routers
    app.include_router(session_router, prefix="/api", tags=["session"])
    app.include_router(enrollment_router, prefix="/api", tags=["enrollment"])
    app.include_router(users_router, prefix="/api", tags=["users"])
    app.include_router(dashboard_router, prefix="/api", tags=["dashboard"])
    app.include_router(sync_router, prefix="/api", tags=["batch"])

    @app.get("/api/health", response_model=HealthResponse, tags=["health"])
    def api_health():
        st: Optional[Station] = app.state.station
        if st is None:
            return HealthResponse(status="error", sessionActive=False, mode="ACCESS", message="Station not started")
        session = st.access.session_status()
        message = None
        if st.db is not None:
            try:
                st.db.fetch_one("SELECT 1")
            except SQLAlchemyError as e:
                message = f"Mirror unavailable: {e}"
        return HealthResponse(
            status="ok" if message is None else "degraded",
            sessionActive=bool(session and session.active),
            mode=st.enrollment.mode,
            message=message,
        )

    @app.websocket("/ws/events")
    async def events(websocket: WebSocket):
        """Push every notification to the connected viewer as JSON."""
        await websocket.accept()
        loop = asyncio.get_running_loop()
        queue: "asyncio.Queue[Notification]" = asyncio.Queue()
        unsubscribe = app.state.station.notifier.subscribe(
            lambda note: loop.call_soon_threadsafe(queue.put_nowait, note)
        )
        try:
            while True:
                note = await queue.get()
                await websocket.send_json(note.model_dump(mode="json"))
        except WebSocketDisconnect:
            logger.debug("[notify] viewer disconnected")
        finally:
            unsubscribe()

    @app.on_event("startup")
    async def startup_event():
        if app.state.station is None:
            app.state.station = Station(config)
        app.state.station.start()
        logger.info("NFC access station API started")

    @app.on_event("shutdown")
    async def shutdown_event():
        if app.state.station is not None:
            app.state.station.shutdown()

    return app


configure_logging()
app = create_app()
