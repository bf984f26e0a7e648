"""
FastAPI routes for the generation pipeline.

  POST /api/generate   {idea, duration} → {script, images}
  GET  /api/quota      today's shared budget and when it resets

Errors are raised as HTTPException; the app-level handler renders them
as {"error": "..."}.
"""

import logging

from fastapi import APIRouter, HTTPException, Request

from .errors import PipelineError, QuotaExceeded
from .models import QuotaStatus
from .orchestrator import PipelineOrchestrator

logger = logging.getLogger(__name__)

pipeline_router = APIRouter(prefix="/api", tags=["pipeline"])


def get_orchestrator(request: Request) -> PipelineOrchestrator:
    return request.app.state.orchestrator


@pipeline_router.post("/generate")
async def generate(request: Request):
    """Run quota check → script → images for one request."""
    try:
        payload = await request.json()
    except ValueError:
        payload = None  # rejected as a validation error by the orchestrator

    orchestrator = get_orchestrator(request)
    try:
        response = await orchestrator.run(payload)
    except QuotaExceeded as e:
        headers = {"Retry-After": str(e.retry_after)} if e.retry_after else None
        raise HTTPException(status_code=429, detail=e.message, headers=headers)
    except PipelineError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception as e:
        logger.error(f"Generation failed unexpectedly: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="An internal server error occurred.")

    return response.to_payload()


@pipeline_router.get("/quota", response_model=QuotaStatus)
async def quota_status(request: Request):
    """Read-only view of the shared daily budget."""
    orchestrator = get_orchestrator(request)
    return orchestrator.gate.status(orchestrator.clock())
