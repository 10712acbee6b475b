# oitrack/services/llm.py
import logging
from typing import List, Optional

import httpx

from oitrack.config import settings

logger = logging.getLogger(__name__)


class LlmError(Exception):
    pass


class LlmClient:
    """Chat completions against a local OpenAI-compatible endpoint."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        model: Optional[str] = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = (base_url or settings.LLM_BASE_URL).rstrip("/")
        self.model = model or settings.LLM_MODEL
        self.temperature = settings.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = max_tokens or settings.LLM_MAX_TOKENS
        self.timeout = timeout or settings.LLM_TIMEOUT_SECONDS
        self.transport = transport

    async def chat(self, system: str, user: str, temperature: Optional[float] = None) -> str:
        messages: List[dict] = [
            {"role": "system", "content": system},
            {"role": "user", "content": user},
        ]
        payload = {
            "model": self.model,
            "messages": messages,
            "temperature": self.temperature if temperature is None else temperature,
            "max_tokens": self.max_tokens,
            "stream": False,
        }
        url = f"{self.base_url}/v1/chat/completions"
        async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
            try:
                r = await client.post(url, json=payload)
                r.raise_for_status()
                data = r.json()
            except httpx.HTTPError as e:
                logger.warning("LLM request to %s failed: %s", url, e)
                raise LlmError(str(e)) from e
            except ValueError as e:
                raise LlmError("LLM returned a non-JSON body") from e

        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            logger.warning("Unexpected LLM response shape: %s", data)
            raise LlmError("Unexpected LLM response shape") from e
        return (content or "").strip()


def get_llm() -> LlmClient:
    return LlmClient()
