"""
OpenAI-compatible chat completions transport.

Handles:
- A single "create chat completion" call per request
- Token usage logging per call
- Surfacing auth/quota/network failures as httpx exceptions

Task prompts and response parsing live in completions.py; this module only
moves JSON over the wire.
"""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

logger = logging.getLogger(__name__)

OPENAI_BASE_URL = "https://api.openai.com/v1"


class OpenAIClient:
    """Async chat completions client. Read-only after construction, safe to share."""

    def __init__(
        self,
        api_key: str,
        base_url: str = OPENAI_BASE_URL,
        timeout: float = 60.0,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(timeout=timeout)

    async def create_chat_completion(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        messages: List[Dict[str, str]],
        log_context: Optional[Dict] = None,
    ) -> Dict[str, Any]:
        """Send one chat completion request. Returns the decoded response body.

        Raises httpx.HTTPStatusError for 4xx/5xx (bad key, quota) and
        httpx.TransportError for network failures.
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload: Dict[str, Any] = {
            "model": model,
            "temperature": temperature,
            "max_tokens": max_tokens,
            "messages": messages,
        }

        start = time.time()
        response = await self.client.post(
            f"{self.base_url}/chat/completions",
            headers=headers,
            json=payload,
        )
        response.raise_for_status()
        result = response.json()
        duration_ms = round((time.time() - start) * 1000)

        usage = result.get("usage") or {}
        prompt_tokens = usage.get("prompt_tokens", 0)
        completion_tokens = usage.get("completion_tokens", 0)

        logger.info(
            f"LLM call: {prompt_tokens}p + {completion_tokens}c",
            extra={
                "model": model,
                "tokens_in": prompt_tokens,
                "tokens_out": completion_tokens,
                "duration_ms": duration_ms,
                **(log_context or {}),
            },
        )

        return result

    async def aclose(self):
        await self.client.aclose()
