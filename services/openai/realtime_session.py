"""Create ephemeral OpenAI Realtime sessions for browser voice clients."""

import logging
from typing import Any, Dict, Optional

from openai import AsyncOpenAI

from services.openai.prompts import realtime_session_instructions
from services.openai.speech import DEFAULT_VOICE
from utils.errors import ValidationError

REALTIME_VOICES = {"alloy", "ash", "ballad", "coral", "echo", "sage", "shimmer", "verse"}


class RealtimeSessionFactory:
    def __init__(self, client: AsyncOpenAI, *, model: str) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.model = model

    async def create(self, voice: str = DEFAULT_VOICE, instructions: Optional[str] = None) -> Dict[str, Any]:
        """Return the session object, including the short-lived client secret."""
        if voice not in REALTIME_VOICES:
            raise ValidationError(f"Unknown voice '{voice}'")
        try:
            session = await self.client.beta.realtime.sessions.create(
                model=self.model,
                voice=voice,
                instructions=instructions or realtime_session_instructions(),
            )
        except Exception as exc:
            logging.error("Realtime session creation failed: %s", exc)
            raise
        if hasattr(session, "model_dump"):
            return session.model_dump()
        return dict(session)
