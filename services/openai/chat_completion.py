"""Direct chat completions for the voice front ends."""

import logging
from typing import AsyncIterator, Dict, List, Optional, Sequence

from openai import AsyncOpenAI

from models.session_models import ConversationMessage


def build_messages(
    system_prompt: str,
    history: Sequence[ConversationMessage],
    message: str,
    *,
    context: Optional[str] = None,
) -> List[Dict[str, str]]:
    """Assemble system prompt, optional context, prior turns, and the new user message."""
    messages = [{"role": "system", "content": system_prompt}]
    if context:
        messages.append({"role": "system", "content": context})
    messages.extend({"role": item.role, "content": item.content} for item in history)
    messages.append({"role": "user", "content": message})
    return messages


class ChatCompletionService:
    """Wrap `chat.completions` for one-shot and streamed replies."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4o") -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    async def complete(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        max_tokens: int = 150,
        temperature: float = 0.8,
    ) -> str:
        try:
            completion = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as exc:
            logging.error("Chat completion failed: %s", exc)
            raise
        if not completion.choices:
            return ""
        return completion.choices[0].message.content or ""

    async def stream(
        self,
        messages: List[Dict[str, str]],
        *,
        model: Optional[str] = None,
        max_tokens: int = 1500,
        temperature: float = 0.7,
    ) -> AsyncIterator[str]:
        """Yield content deltas as they arrive."""
        try:
            stream = await self.client.chat.completions.create(
                model=model or self.model,
                messages=messages,
                max_tokens=max_tokens,
                temperature=temperature,
                stream=True,
            )
        except Exception as exc:
            logging.error("Streaming chat completion failed: %s", exc)
            raise
        async for chunk in stream:
            if not chunk.choices:
                continue
            delta = chunk.choices[0].delta.content
            if delta:
                yield delta
