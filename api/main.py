"""
FastAPI application entrypoint.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI

from api.routes import router, settings
from core.session import AnalysisSession

logging.basicConfig(level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Camera and landmarker live exactly as long as the app."""
    session = AnalysisSession(settings)
    app.state.session = session
    await session.start()
    try:
        yield
    finally:
        await session.close()


app = FastAPI(title="Face Vibe Analysis API", version="1.0.0", lifespan=lifespan)
app.include_router(router)

@app.get("/health")
def health() -> dict:
    """
    Health check endpoint.

    Returns:
        dict: Simple status payload.
    """
    return {"status": "ok"}
