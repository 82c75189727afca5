# rumlab/main.py
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, List, Optional

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse
from fastapi.staticfiles import StaticFiles
from sqlalchemy.exc import SQLAlchemyError

from rumlab.core.config import settings
from rumlab.core.errors import AnalysisError, ValidationError
from rumlab.core.logging import configure_logging
from rumlab.models import AnalysisReport, AnalysisRequest, ErrorResponse, RumSample
from rumlab.services.analysis_service import SyntheticAnalyzer
from rumlab.services.broadcaster import RumBroadcaster
from rumlab.services.device_profiles import get_profile
from rumlab.services.rum_store import SqlRumStore

logger = logging.getLogger(__name__)

# --- Application State ---
class AppState:
    store = SqlRumStore(settings.DATABASE_URL)
    broadcaster = RumBroadcaster(queue_size=settings.SSE_QUEUE_SIZE)
    analyzer = SyntheticAnalyzer(
        profile=get_profile(settings.DEVICE_PROFILE),
        navigation_timeout_ms=settings.NAVIGATION_TIMEOUT_MS,
        simulation_budget_ms=settings.SIMULATION_BUDGET_MS,
        max_concurrent=settings.MAX_CONCURRENT_ANALYSES,
    )

app_state = AppState()

@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.LOG_LEVEL)
    app_state.store.init_db()
    logger.info("rumlab ready, device profile %s", settings.DEVICE_PROFILE)
    yield
    app_state.store.dispose()

# --- FastAPI App Initialization ---
app = FastAPI(
    title="rumlab",
    description="Collects RUM interaction-latency samples, streams them live and runs synthetic lab analyses.",
    version="1.0.0",
    lifespan=lifespan,
)

# --- CORS Middleware ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

if settings.FRONTEND_DIR:
    app.mount("/static", StaticFiles(directory=settings.FRONTEND_DIR, html=True), name="static")

# --- Error Handlers ---
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content=ErrorResponse(error=str(exc)).model_dump(exclude_none=True))

@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    body = ErrorResponse(error="Invalid request", details=jsonable_encoder(exc.errors()))
    return JSONResponse(status_code=400, content=body.model_dump())

@app.exception_handler(AnalysisError)
async def analysis_error_handler(request: Request, exc: AnalysisError):
    body = ErrorResponse(error=exc.message, details=exc.details)
    return JSONResponse(status_code=500, content=body.model_dump(exclude_none=True))

@app.exception_handler(SQLAlchemyError)
async def storage_error_handler(request: Request, exc: SQLAlchemyError):
    logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=500, content=ErrorResponse(error="Storage error", details=str(exc)).model_dump())

# --- API Endpoints ---
@app.post("/rum")
async def ingest_rum(sample: RumSample):
    """
    Stores a RUM sample posted by the page beacon and pushes it to live subscribers.
    """
    await run_in_threadpool(app_state.store.append, sample)
    app_state.broadcaster.publish(sample)
    return {"status": "ok"}

@app.get("/rum-data", response_model=List[RumSample], response_model_exclude_none=True)
def list_rum_data(url: Optional[str] = None):
    """
    Returns stored RUM samples in timestamp order, optionally only those for one page URL.
    """
    return app_state.store.query(url)

@app.get("/rum-stream")
async def stream_rum(request: Request):
    """
    Server-Sent Events feed of RUM samples as they arrive. No history is replayed.
    """
    return StreamingResponse(
        rum_event_stream(request, app_state.broadcaster, settings.SSE_KEEPALIVE_SECONDS),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )

async def rum_event_stream(request: Request, broadcaster: RumBroadcaster, keepalive_seconds: float) -> AsyncIterator[str]:
    subscription = broadcaster.subscribe()
    try:
        yield ": connected\n\n"
        while not await request.is_disconnected():
            sample = await subscription.get(timeout=keepalive_seconds)
            if sample is None:
                yield ": keepalive\n\n"
                continue
            yield f"data: {sample.model_dump_json(exclude_none=True)}\n\n"
    finally:
        subscription.close()

@app.get("/analyze", response_model=AnalysisReport)
async def analyze_website(url: Optional[str] = None):
    """
    Runs a synthetic lab analysis (headless browser, throttled device, simulated
    interaction) and returns the classified interaction metrics.
    """
    return await app_state.analyzer.analyze(url)

@app.post("/api/analyze", response_model=AnalysisReport)
async def analyze_website_post(request: AnalysisRequest):
    return await app_state.analyzer.analyze(request.url)

# A simple root endpoint to confirm the API is running
@app.get("/")
def read_root():
    return {"message": "Welcome to the rumlab API"}

def run() -> None:
    """Console entry point."""
    import uvicorn

    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())
