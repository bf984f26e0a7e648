"""
Script-to-Storyboard Pipeline

Quota-gated orchestration:
  Admission: shared daily counter, reserved before any provider call
  Scripting: Gemini → ordered scene list
  Imaging: one image per scene, concurrent, per-scene failure isolation
"""

from .errors import (
    PipelineError,
    ValidationError,
    QuotaExceeded,
    UpstreamError,
    MalformedResponseError,
    QuotaStoreError,
)
from .image_fanout import ImageFanout
from .models import ImageResult, PipelineResponse, PipelineStatus, QuotaState, Scene
from .orchestrator import PipelineOrchestrator
from .quota_gate import Admitted, QuotaGate, Rejected
from .quota_store import MemoryQuotaStore, QuotaStore, RedisQuotaStore, build_quota_store
from .routes import pipeline_router
from .script_gen import ScriptGenerator

__all__ = [
    "PipelineError",
    "ValidationError",
    "QuotaExceeded",
    "UpstreamError",
    "MalformedResponseError",
    "QuotaStoreError",
    "ImageFanout",
    "ImageResult",
    "PipelineResponse",
    "PipelineStatus",
    "QuotaState",
    "Scene",
    "PipelineOrchestrator",
    "Admitted",
    "QuotaGate",
    "Rejected",
    "MemoryQuotaStore",
    "QuotaStore",
    "RedisQuotaStore",
    "build_quota_store",
    "pipeline_router",
    "ScriptGenerator",
]
