import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from securescan.config import settings
from securescan.database import Base, SessionLocal, engine
from securescan.routers.analyze import router as analyze_router
from securescan.routers.session import router as session_router
from securescan.session import ScanSession
from securescan.store import MemoryStorage, ResultStore, SQLStorage

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="SecureScan AI",
    version="0.1.0",
    description="QR code URL scanning with AI-powered risk assessment",
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def load_session():
    if engine is not None:
        # Create database tables
        Base.metadata.create_all(bind=engine)
        storage = SQLStorage(SessionLocal)
    else:
        storage = MemoryStorage()

    store = ResultStore(storage, limit=settings.history_limit)
    store.load()
    app.state.session = ScanSession(
        store,
        capture_interval=settings.capture_interval,
        max_read_failures=settings.capture_max_read_failures,
    )
    logger.info(
        "Session ready: %d scans in history, %d blocked URLs",
        len(store.history),
        len(store.blocked_urls),
    )


@app.on_event("shutdown")
async def stop_capture():
    session = getattr(app.state, "session", None)
    if session is not None:
        session.cancel()


@app.exception_handler(Exception)
async def unexpected_error(request: Request, exc: Exception):
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Something went wrong",
            "detail": "The application encountered an unexpected error. Please try refreshing the page.",
        },
    )


@app.get("/health")
async def health_check():
    return {"status": "ok"}


# Include the routers
app.include_router(analyze_router)
app.include_router(session_router)
