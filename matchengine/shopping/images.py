"""Thumbnail download for candidate images, returned as base64 data URLs."""

from __future__ import annotations

import asyncio
import base64
import logging

import httpx

from matchengine.config.settings import ImageURLPolicyConfig
from matchengine.config.url_policy import validate_image_url
from matchengine.matching.ports import ImageFetcher
from matchengine.telemetry.errors import ErrorCode, emit_structured_error

logger = logging.getLogger(__name__)

DEFAULT_CONTENT_TYPE = "image/jpeg"


class HttpImageFetcher(ImageFetcher):
    """Downloads thumbnails that pass the URL policy. Any failure yields None."""

    def __init__(
        self,
        policy: ImageURLPolicyConfig,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 10.0,
        resolve_dns: bool = True,
    ) -> None:
        self._policy = policy
        self._client = client
        self._timeout_s = timeout_s
        self._resolve_dns = resolve_dns

    async def fetch(self, url: str) -> str | None:
        if url.startswith("data:image/"):
            return url

        # DNS resolution blocks
        verdict = await asyncio.to_thread(
            validate_image_url, url, self._policy, resolve_dns=self._resolve_dns
        )
        if not verdict.allowed:
            logger.warning("Blocked image URL %s: %s", url[:120], verdict.reason)
            return None

        try:
            if self._client is not None:
                response = await self._client.get(url, follow_redirects=False)
            else:
                async with httpx.AsyncClient(timeout=self._timeout_s) as client:
                    response = await client.get(url, follow_redirects=False)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            emit_structured_error(
                logger,
                code=ErrorCode.IMAGE_FETCH_FAILED,
                message=str(exc) or type(exc).__name__,
                suppressed=True,
                details={"url": url[:120]},
            )
            return None

        content = response.content
        if not content:
            return None
        if len(content) > self._policy.max_image_bytes:
            logger.warning("Image too large (%d bytes): %s", len(content), url[:120])
            return None

        content_type = response.headers.get("content-type", DEFAULT_CONTENT_TYPE).split(";")[0].strip()
        if not content_type.startswith("image/"):
            content_type = DEFAULT_CONTENT_TYPE
        encoded = base64.b64encode(content).decode("ascii")
        return f"data:{content_type};base64,{encoded}"
