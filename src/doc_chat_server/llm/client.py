from dataclasses import dataclass, field
from typing import List, Dict, Any, Optional
import logging

import httpx

from ..config import settings
from ..core.errors import CompletionFailure

logger = logging.getLogger("chat.llm")


@dataclass(frozen=True)
class ChatCompletion:
    text: str
    usage: Dict[str, int] = field(default_factory=dict)


class LLMClient:
    def __init__(
        self,
        api_key: Optional[str] = None,
        model: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or settings.openai_api_key.get_secret_value()
        self.model = model or settings.chat_model
        self.url = f"{(base_url or settings.openai_base_url).rstrip('/')}/chat/completions"
        self.timeout = timeout or settings.http_timeout
        self._transport = transport

    async def chat(
        self,
        messages: List[Dict[str, str]],
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
    ) -> ChatCompletion:
        """
        Run one chat completion over ``messages`` (system message included).

        Returns the first choice's text and the usage counters, e.g.
        {"prompt_tokens": 12, "completion_tokens": 30, "total_tokens": 42}.
        Raises CompletionFailure on transport errors, non-2xx responses or a
        body without a choice.
        """
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if max_tokens is not None:
            payload["max_tokens"] = max_tokens

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(
                    self.url,
                    json=payload,
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("Chat completion failed (%s): %s", type(exc).__name__, exc)
            raise CompletionFailure("Failed to generate chat response") from exc

        try:
            text = data["choices"][0]["message"].get("content") or ""
        except (KeyError, IndexError, TypeError, AttributeError) as exc:
            raise CompletionFailure("Chat completion response has no choices") from exc

        if not isinstance(text, str):
            raise CompletionFailure("Chat completion content is not text")

        return ChatCompletion(text=text, usage=_parse_usage(data.get("usage")))


def _parse_usage(raw: Any) -> Dict[str, int]:
    """Keep the integer token counts; missing or malformed counts are dropped."""
    if not isinstance(raw, dict):
        return {}
    return {
        key: value
        for key, value in raw.items()
        if key in ("prompt_tokens", "completion_tokens", "total_tokens")
        and isinstance(value, int) and not isinstance(value, bool)
    }
