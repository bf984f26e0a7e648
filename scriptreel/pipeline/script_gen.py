"""
Step 1: Script Generation: Gemini via the generateContent REST endpoint.

The model is asked for ONLY a JSON object {"script": [scene, ...]} and the
request sets responseMimeType=application/json plus a responseSchema, so the
reply is a document rather than prose. The parsed shape is still validated
before anything downstream sees it.
"""

import json
import logging
from typing import Optional

import httpx
from pydantic import ValidationError as SchemaError

from ..config import Settings
from .errors import MalformedResponseError, UpstreamError
from .models import Scene

logger = logging.getLogger(__name__)

API_BASE = "https://generativelanguage.googleapis.com/v1beta"

SCENE_FIELDS = ("title", "timing", "description", "soundtrackSuggestion", "narrationScript")

SCRIPT_PROMPT = """Write a detailed script for a {duration}-second video about: "{idea}".
The script must be a list of scenes.
Your answer MUST be ONLY a valid JSON object, with no extra formatting such as markdown (```json).
The JSON object must contain a single key named "script", which is an array of objects.
Every scene object in the array must have exactly these keys:
- "title": (string) A short title for the scene.
- "timing": (string) The scene's time range in seconds, formatted "start-end" (e.g. "0-5s").
- "description": (string) A detailed visual description, written to be used as the prompt for an image generation API.
- "soundtrackSuggestion": (string) A soundtrack or sound-effect suggestion.
- "narrationScript": (string) The narration text for this scene.
"""

SCRIPT_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "script": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {name: {"type": "STRING"} for name in SCENE_FIELDS},
                "required": list(SCENE_FIELDS),
                "propertyOrdering": list(SCENE_FIELDS),
            },
        },
    },
    "required": ["script"],
}


def _strip_code_fences(text: str) -> str:
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1]
    if text.endswith("```"):
        text = text.rsplit("```", 1)[0]
    return text.strip()


def parse_script(result: dict) -> list[Scene]:
    """
    Extract the scene list from a generateContent response body.

    Raises MalformedResponseError for anything that is not
    {"script": [<five string fields>, ...]} with at least one scene.
    """
    try:
        text = result["candidates"][0]["content"]["parts"][0]["text"]
    except (KeyError, IndexError, TypeError):
        logger.error(f"Gemini response had no text part: {json.dumps(result)[:500]}")
        raise MalformedResponseError("The script generation response was not in the expected format.")

    try:
        document = json.loads(_strip_code_fences(text))
    except (json.JSONDecodeError, TypeError) as e:
        logger.error(f"Gemini returned invalid JSON: {e}\nRaw: {str(text)[:500]}")
        raise MalformedResponseError("The script generation response was not valid JSON.")

    raw_scenes = document.get("script") if isinstance(document, dict) else None
    if not isinstance(raw_scenes, list) or not raw_scenes:
        logger.error(f"Gemini JSON has no usable 'script' array: {str(text)[:500]}")
        raise MalformedResponseError("Invalid script format received from the API.")

    try:
        return [Scene.model_validate(item) for item in raw_scenes]
    except SchemaError as e:
        logger.error(f"Gemini scene records failed validation: {e}")
        raise MalformedResponseError("Invalid script format received from the API.")


class ScriptGenerator:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_key = settings.gemini_api_key
        self.model = settings.gemini_model
        self.timeout = settings.script_timeout_seconds
        self._transport = transport

    @property
    def api_url(self) -> str:
        return f"{API_BASE}/models/{self.model}:generateContent"

    def build_request(self, idea: str, duration_seconds: int) -> dict:
        return {
            "contents": [{"parts": [{"text": SCRIPT_PROMPT.format(duration=duration_seconds, idea=idea)}]}],
            "generationConfig": {
                "responseMimeType": "application/json",
                "responseSchema": SCRIPT_RESPONSE_SCHEMA,
            },
        }

    async def generate(self, idea: str, duration_seconds: int) -> list[Scene]:
        if not self.api_key:
            logger.error("GEMINI_API_KEY not set")
            raise UpstreamError("Script generation is not configured.")

        request_body = self.build_request(idea, duration_seconds)

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(
                    self.api_url,
                    params={"key": self.api_key},
                    json=request_body,
                )
        except httpx.TimeoutException:
            logger.error(f"Gemini API timed out after {self.timeout}s")
            raise UpstreamError("Failed to generate the script. The Gemini API timed out.")
        except httpx.HTTPError as e:
            logger.error(f"Gemini API request failed: {e}")
            raise UpstreamError("Failed to generate the script. The Gemini API could not be reached.")

        if not response.is_success:
            logger.error(f"Gemini API error {response.status_code}: {response.text[:500]}")
            raise UpstreamError("Failed to generate the script. The Gemini API returned an error.")

        try:
            result = response.json()
        except ValueError:
            logger.error(f"Gemini API returned a non-JSON body: {response.text[:500]}")
            raise MalformedResponseError("The script generation response was not in the expected format.")

        scenes = parse_script(result)
        logger.info(f"Script generated: {len(scenes)} scenes for a {duration_seconds}s video")
        return scenes
