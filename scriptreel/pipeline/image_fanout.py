"""
Step 2: Storyboard Images: one image-generation call per scene.

All calls run concurrently and are joined once every one has settled. Each
call catches its own failure and turns it into an ImageResult.failed, so a
bad scene never cancels its siblings and never fails the request.
"""

import asyncio
import logging
from contextlib import nullcontext
from typing import Optional

import httpx

from ..config import Settings
from .models import IMAGE_GENERATED_PLACEHOLDER, ImageResult, Scene

logger = logging.getLogger(__name__)


def extract_image_url(data) -> str:
    """Pull the image reference out of a provider response, or fall back to the placeholder."""
    if isinstance(data, dict):
        url = data.get("imageUrl") or data.get("image_url") or data.get("url")
        if not url:
            # OpenAI-style {"data": [{"url": ...}]}
            items = data.get("data")
            if isinstance(items, list) and items and isinstance(items[0], dict):
                url = items[0].get("url")
        if isinstance(url, str) and url:
            return url
    return IMAGE_GENERATED_PLACEHOLDER


class ImageFanout:
    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.api_url = settings.image_api_url
        self.api_key = settings.image_api_key
        self.size = settings.image_size
        self.timeout = settings.image_timeout_seconds
        self.max_concurrency = settings.image_max_concurrency
        self._transport = transport

    async def _generate_one(
        self,
        client: httpx.AsyncClient,
        index: int,
        scene: Scene,
        limiter,
    ) -> ImageResult:
        prompt = scene.description
        logger.info(f"Generating image for scene {index + 1} ({scene.title!r}): {prompt[:80]}")
        try:
            async with limiter:
                response = await client.post(
                    self.api_url,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                    json={"prompt": prompt, "n": 1, "size": self.size},
                )
            if not response.is_success:
                logger.error(
                    f"Image API returned {response.status_code} for scene {index + 1} "
                    f"({scene.title!r}): {response.text[:200]}"
                )
                return ImageResult.failed(f"Image API returned {response.status_code}")
            return ImageResult.resolved(extract_image_url(response.json()))
        except Exception as e:
            logger.error(f"Image generation failed for scene {index + 1} ({scene.title!r}): {e}")
            return ImageResult.failed(str(e) or type(e).__name__)

    async def generate(self, script: list[Scene]) -> list[ImageResult]:
        """One result per scene, in script order, regardless of completion order."""
        if not script:
            return []

        limiter = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency else nullcontext()

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            results = await asyncio.gather(
                *(self._generate_one(client, i, scene, limiter) for i, scene in enumerate(script))
            )

        failed = sum(1 for r in results if not r.ok)
        if failed:
            logger.warning(f"Images: {len(results) - failed}/{len(results)} generated, {failed} fell back to placeholder")
        else:
            logger.info(f"Images: {len(results)}/{len(results)} generated")
        return list(results)
