"""
FastAPI application for the PR CI tracker.

The tracking engine lives for the lifetime of the app: it is built and
started in the lifespan handler, so periodic refreshes run on the same
event loop that serves requests.
"""

import logging
from collections import deque
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from analyzer.log_analysis import build_analyzer
from tracker.engine import build_engine
from tracker.events import TrackerEvent
from utils.config_loader import load_config
from utils.logger import setup_logger

logger = logging.getLogger(__name__)

# Events kept for GET /api/events
EVENT_LOG_SIZE = 200


class EventLog:
    """Bounded, JSON-ready log of the most recent engine events."""

    def __init__(self, maxlen: int = EVENT_LOG_SIZE):
        self._events = deque(maxlen=maxlen)

    def __call__(self, event: TrackerEvent) -> None:
        self._events.append(event.model_dump(mode="json"))

    def recent(self, limit: int) -> list[dict]:
        return list(self._events)[-limit:]


@asynccontextmanager
async def lifespan(app: FastAPI):
    config = load_config()
    setup_logger(config.log_level)
    engine = build_engine(config)
    event_log = EventLog()
    engine.events.subscribe(event_log)

    app.state.config = config
    app.state.engine = engine
    app.state.event_log = event_log
    app.state.analyzer = build_analyzer(config.credentials)

    engine.start()
    logger.info(f"Tracker engine started with {len(engine.records())} PRs")
    try:
        yield
    finally:
        await engine.stop()
        logger.info("Tracker engine stopped")


# Create FastAPI app
app = FastAPI(
    title="PR CI Tracker API",
    description="Track GitHub pull requests, watch their CI and rerun failed workflows",
    version="1.0.0",
    lifespan=lifespan,
)

# Enable CORS for local development
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173"],  # Vite dev server
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

from backend.routes import router  # noqa: E402
app.include_router(router)
