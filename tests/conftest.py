"""Shared fixtures: settings, sample scenes and provider doubles built on httpx.MockTransport."""

import json
from datetime import date, datetime, timezone

import httpx
import pytest

from scriptreel import metrics
from scriptreel.config import Settings
from scriptreel.pipeline import (
    ImageFanout,
    MemoryQuotaStore,
    PipelineOrchestrator,
    QuotaGate,
    QuotaState,
    ScriptGenerator,
)

NOW = datetime(2026, 10, 18, 12, 0, tzinfo=timezone.utc)
TODAY = NOW.date()
YESTERDAY = date(2026, 10, 17)

IMAGE_API_URL = "https://images.test/v1/generations"

SAMPLE_SCENES = [
    {
        "title": "The Blank Canvas",
        "timing": "0-10s",
        "description": "A small rusty robot stares at an empty canvas in a sunlit attic",
        "soundtrackSuggestion": "Soft piano",
        "narrationScript": "Every artist starts somewhere.",
    },
    {
        "title": "First Strokes",
        "timing": "10-20s",
        "description": "The robot's clumsy metal hand smears blue paint across the canvas",
        "soundtrackSuggestion": "Playful strings",
        "narrationScript": "Even when the first try is a mess.",
    },
    {
        "title": "Masterpiece",
        "timing": "20-30s",
        "description": "The robot steps back from a vivid painting of a sunrise",
        "soundtrackSuggestion": "Swelling orchestra",
        "narrationScript": "And then, one day, it clicks.",
    },
]


def gemini_body(document) -> dict:
    """Wrap a JSON document (or raw text) the way generateContent returns it."""
    text = document if isinstance(document, str) else json.dumps(document)
    return {"candidates": [{"content": {"parts": [{"text": text}]}}]}


def image_url_for(request: httpx.Request) -> str:
    prompt = json.loads(request.content)["prompt"]
    index = [s["description"] for s in SAMPLE_SCENES].index(prompt)
    return f"https://cdn.test/scene-{index + 1}.png"


@pytest.fixture(autouse=True)
def reset_metrics():
    metrics.reset()
    yield
    metrics.reset()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        gemini_api_key="test-gemini-key",
        image_api_url=IMAGE_API_URL,
        image_api_key="test-image-key",
        daily_limit=50,
        script_timeout_seconds=5,
        image_timeout_seconds=5,
    )


@pytest.fixture
def gemini_ok():
    """Gemini double that always returns the three sample scenes."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json=gemini_body({"script": SAMPLE_SCENES}))
    return handler


@pytest.fixture
def images_ok():
    """Image API double returning one URL per scene, keyed by prompt."""
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"imageUrl": image_url_for(request)})
    return handler


@pytest.fixture
def make_orchestrator(settings, gemini_ok, images_ok):
    """Factory: orchestrator over a MemoryQuotaStore seeded with `count` for `day`."""
    def build(count=0, day=TODAY, gemini_handler=None, image_handler=None, daily_limit=None):
        store = MemoryQuotaStore(initial=QuotaState(count=count, last_reset_date=day))
        gate = QuotaGate(store, daily_limit=settings.daily_limit if daily_limit is None else daily_limit)
        orchestrator = PipelineOrchestrator(
            gate=gate,
            script_generator=ScriptGenerator(
                settings, transport=httpx.MockTransport(gemini_handler or gemini_ok)
            ),
            image_fanout=ImageFanout(
                settings, transport=httpx.MockTransport(image_handler or images_ok)
            ),
            clock=lambda: NOW,
        )
        return orchestrator, store
    return build
