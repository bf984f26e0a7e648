"""
PipelineOrchestrator: request-level sequencing.

  START      validate {idea, duration}            (no quota touched)
  ADMITTING  reserve one unit of the daily quota
  SCRIPTING  Gemini → ordered scene list
  IMAGING    one image per scene, concurrently    (cannot fail the request)
  DONE       {script, images}

Any error moves the request to FAILED and propagates as a PipelineError.
The quota unit reserved in ADMITTING is never refunded, even when
SCRIPTING fails.
"""

import logging
import math
import time
import uuid
from datetime import datetime, timezone
from typing import Callable, Optional

from pydantic import ValidationError as SchemaError

from .. import metrics
from .errors import (
    MalformedResponseError,
    PipelineError,
    QuotaExceeded,
    UpstreamError,
    ValidationError,
)
from .image_fanout import ImageFanout
from .models import GenerateRequest, PipelineResponse, PipelineStatus
from .quota_gate import QuotaGate, Rejected
from .script_gen import ScriptGenerator

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def validate_request(payload) -> GenerateRequest:
    if not isinstance(payload, dict):
        raise ValidationError("The request body must be a JSON object.")
    if not payload.get("idea") or not payload.get("duration"):
        raise ValidationError('The fields "idea" and "duration" are required.')
    try:
        return GenerateRequest.model_validate(payload)
    except SchemaError:
        raise ValidationError('"idea" must be a non-empty string and "duration" a positive number of seconds.')


class PipelineOrchestrator:
    """
    Usage:
        orchestrator = PipelineOrchestrator(gate, ScriptGenerator(settings), ImageFanout(settings))
        response = await orchestrator.run({"idea": "...", "duration": 30})
    """

    def __init__(
        self,
        gate: QuotaGate,
        script_generator: ScriptGenerator,
        image_fanout: ImageFanout,
        clock: Callable[[], datetime] = utc_now,
    ):
        self.gate = gate
        self.script_generator = script_generator
        self.image_fanout = image_fanout
        self.clock = clock

    def _transition(self, request_id: str, status: PipelineStatus, step: str = ""):
        logger.info(f"[{request_id}] {status.value} → {step}")

    async def run(self, payload, now: Optional[datetime] = None) -> PipelineResponse:
        request_id = uuid.uuid4().hex[:8]
        started = time.time()
        metrics.inc_counter("requests.generate")

        try:
            # ── START ────────────────────────────────────────────────
            self._transition(request_id, PipelineStatus.START, "validating request")
            request = validate_request(payload)

            # ── ADMITTING ────────────────────────────────────────────
            self._transition(request_id, PipelineStatus.ADMITTING, "checking daily quota")
            decision = self.gate.admit(now or self.clock())
            if isinstance(decision, Rejected):
                raise QuotaExceeded(
                    "Daily generation limit reached. Please upgrade or try again tomorrow.",
                    retry_after=decision.retry_after_seconds,
                )
            metrics.inc_counter("quota.admitted")

            # ── SCRIPTING ────────────────────────────────────────────
            duration_seconds = math.ceil(request.duration)
            self._transition(
                request_id, PipelineStatus.SCRIPTING,
                f"writing a {duration_seconds}s script about {request.idea[:60]!r}",
            )
            script = await self.script_generator.generate(request.idea, duration_seconds)

            # ── IMAGING ──────────────────────────────────────────────
            self._transition(request_id, PipelineStatus.IMAGING, f"generating {len(script)} images")
            results = await self.image_fanout.generate(script)

            resolved = sum(1 for r in results if r.ok)
            metrics.inc_counter("images.resolved", resolved)
            metrics.inc_counter("images.failed", len(results) - resolved)

            # ── DONE ─────────────────────────────────────────────────
            self._transition(request_id, PipelineStatus.DONE, f"{resolved}/{len(results)} images resolved")
            return PipelineResponse(script=script, images=[r.reference for r in results])

        except PipelineError as e:
            self._transition(request_id, PipelineStatus.FAILED, f"{type(e).__name__}: {e.message}")
            metrics.inc_counter(_error_counter(e))
            metrics.record_error("generate", type(e).__name__, e.message)
            raise
        except Exception as e:
            self._transition(request_id, PipelineStatus.FAILED, f"unexpected {type(e).__name__}")
            metrics.inc_counter("errors.internal")
            metrics.record_error("generate", type(e).__name__, str(e))
            raise
        finally:
            metrics.record_latency("generate", (time.time() - started) * 1000)


def _error_counter(error: PipelineError) -> str:
    if isinstance(error, ValidationError):
        return "errors.validation"
    if isinstance(error, QuotaExceeded):
        return "quota.rejected"
    if isinstance(error, UpstreamError):
        return "errors.upstream"
    if isinstance(error, MalformedResponseError):
        return "errors.malformed"
    return "errors.internal"
