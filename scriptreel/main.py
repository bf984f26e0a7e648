import os
import time
import logging
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from . import metrics
from .config import Settings, load_settings
from .cors_middleware import CORSMiddleware
from .pipeline import (
    ImageFanout,
    PipelineOrchestrator,
    QuotaGate,
    ScriptGenerator,
    build_quota_store,
    pipeline_router,
)

load_dotenv()

logger = logging.getLogger(__name__)


# ── Lazy Redis client ─────────────────────────────────────────────────────────
_redis_client = None


def get_redis(redis_url: Optional[str]):
    """Get or create a Redis client. Returns None if Redis is not configured or unreachable."""
    global _redis_client
    if _redis_client is None and redis_url:
        import redis
        client = redis.from_url(redis_url, decode_responses=True)
        try:
            client.ping()
            logger.info(f"Redis connected: {redis_url[:30]}...")
            _redis_client = client
        except redis.RedisError as e:
            logger.error(f"Redis connection failed: {e}, falling back to in-memory quota")
    return _redis_client


def build_orchestrator(settings: Settings) -> PipelineOrchestrator:
    store = build_quota_store(get_redis(settings.redis_url), settings.quota_key)
    return PipelineOrchestrator(
        gate=QuotaGate(store, daily_limit=settings.daily_limit),
        script_generator=ScriptGenerator(settings),
        image_fanout=ImageFanout(settings),
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("Generation service starting up...")
    metrics.set_gauge("start_time", time.time())
    if app.state.orchestrator is None:
        app.state.orchestrator = build_orchestrator(app.state.settings)
    yield
    logger.info("Generation service shutting down...")


async def http_error_handler(request: Request, exc: StarletteHTTPException):
    """Render every HTTP error as {"error": "..."}."""
    if exc.status_code == 405:
        allowed = [m.strip() for m in (exc.headers or {}).get("Allow", "").split(",")]
        allowed = sorted(m for m in allowed if m and m != "HEAD")
        message = f"Method not allowed. Use {' or '.join(allowed) or 'a supported method'}."
    else:
        message = exc.detail if isinstance(exc.detail, str) else "Request failed."
    return JSONResponse({"error": message}, status_code=exc.status_code, headers=exc.headers)


def create_app(
    settings: Optional[Settings] = None,
    orchestrator: Optional[PipelineOrchestrator] = None,
) -> FastAPI:
    settings = settings or load_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(title="scriptreel", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.orchestrator = orchestrator

    app.add_middleware(CORSMiddleware, allowed_origin=settings.allowed_origin)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.include_router(pipeline_router)

    @app.get("/health")
    def health_check():
        """Verify the service is running and providers are configured."""
        current = app.state.orchestrator
        return {
            "status": "ok",
            "gemini_api_key_set": bool(settings.gemini_api_key),
            "image_api_key_set": bool(settings.image_api_key),
            "quota_backend": current.gate.store.backend if current else "not_initialized",
            "daily_limit": settings.daily_limit,
        }

    @app.get("/metrics")
    def metrics_endpoint():
        """Return a snapshot of service metrics."""
        return metrics.get_snapshot()

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=int(os.environ.get("PORT", app.state.settings.port)))
