"""HTTP embedding client for OpenAI-compatible endpoints."""

from __future__ import annotations

import logging
from typing import List, Optional

import httpx

from ..errors import TransientError

logger = logging.getLogger(__name__)


class HttpEmbedder:
    """Calls ``POST {url}`` with ``{"input": text, "model": model}``."""

    def __init__(
        self,
        api_key: str,
        model: str = "text-embedding-3-small",
        url: str = "https://api.openai.com/v1/embeddings",
        timeout: float = 30.0,
        client: Optional[httpx.AsyncClient] = None,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.url = url
        self.timeout = timeout
        self._client = client

    async def embed(self, text: str) -> List[float]:
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {"input": text, "model": self.model}
        try:
            if self._client is not None:
                response = await self._client.post(self.url, json=payload, headers=headers)
            else:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.post(self.url, json=payload, headers=headers)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Embedding request failed: {e}")
            raise TransientError(f"Embedding request failed: {e}") from e

        data = response.json().get("data") or []
        if not data:
            raise TransientError("Embedding response contained no vectors")
        return data[0]["embedding"]
