"""FastAPI routes for voice conversation, speech-to-text, and synthesis."""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.voice_controller import (
	list_voices,
	speech_to_text,
	synthesize_speech,
	voice_chat,
	voice_stamp_search,
)
from utils.errors import AppError

router = APIRouter(prefix="/api")


class VoiceChatPayload(BaseModel):
	message: Any = None
	sessionId: Optional[str] = None
	conversationHistory: Optional[List[Any]] = None


class StampSearchPayload(BaseModel):
	query: Any = None
	sessionId: Optional[str] = None


class SpeechPayload(BaseModel):
	audio: Any = None
	mimeType: Optional[str] = None
	sessionId: Optional[str] = None


class SynthesisPayload(BaseModel):
	text: Any = None
	voice: Optional[str] = None
	speed: float = 1.0


@router.post("/voice-chat")
async def voice_chat_route(request: Request, payload: VoiceChatPayload):
	try:
		return await voice_chat(request, payload.message, payload.sessionId, payload.conversationHistory)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Voice chat failed: %s", exc)
		raise HTTPException(
			status_code=500,
			detail="Sorry, I'm having trouble with our conversation right now. Could you try again?",
		)


@router.post("/voice-stamp-search")
async def voice_stamp_search_route(request: Request, payload: StampSearchPayload):
	try:
		return await voice_stamp_search(request, payload.query)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/speech-to-text")
async def speech_to_text_route(request: Request, payload: SpeechPayload):
	try:
		return await speech_to_text(request, payload.audio, payload.mimeType)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Speech-to-text failed: %s", exc)
		raise HTTPException(status_code=500, detail="Sorry, I couldn't process your voice. Please try again.")


@router.post("/voice-synthesis")
async def voice_synthesis_route(request: Request, payload: SynthesisPayload):
	try:
		return await synthesize_speech(request, payload.text, payload.voice, payload.speed)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Voice synthesis failed: %s", exc)
		raise HTTPException(status_code=500, detail="Failed to synthesize speech")


@router.get("/voice-synthesis")
async def voice_list_route(request: Request):
	return await list_voices(request)
