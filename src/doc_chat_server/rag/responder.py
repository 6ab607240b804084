"""
Chat Responder

Wraps the chat-completion API: prepends a single system instruction (with
the retrieved context, when there is any) to the conversation history and
returns the generated reply.

History truncation is the caller's job; every message passed in is sent.
"""

from __future__ import annotations

from typing import Dict, List

from ..llm.client import ChatCompletion, LLMClient
from ..prompts import (
    CHAT_SYSTEM_PROMPT,
    CLOSING_INSTRUCTION,
    CONTEXT_BLOCK_TEMPLATE,
    NO_CONTEXT_INSTRUCTION,
)


def build_system_prompt(context: str) -> str:
    if context:
        body = CONTEXT_BLOCK_TEMPLATE.format(context=context)
    else:
        body = NO_CONTEXT_INSTRUCTION

    return f"{CHAT_SYSTEM_PROMPT}\n\n{body}\n\n{CLOSING_INSTRUCTION}"


class ChatResponder:
    def __init__(
        self,
        llm: LLMClient,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> None:
        self.llm = llm
        self.temperature = temperature
        self.max_tokens = max_tokens

    async def respond(
        self,
        history: List[Dict[str, str]],
        context: str,
    ) -> ChatCompletion:
        """
        Generate the assistant reply.

        Raises
        ------
        CompletionFailure
            On any chat-completion API error.
        """
        messages = [{"role": "system", "content": build_system_prompt(context)}]
        messages.extend({"role": m["role"], "content": m["content"]} for m in history)

        return await self.llm.chat(
            messages,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
