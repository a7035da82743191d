"""FastAPI routes for the assistant chat."""

import logging
from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.chat_controller import chat, chat_status
from utils.errors import AppError

router = APIRouter(prefix="/api")


class ChatPayload(BaseModel):
	message: Any = None
	sessionId: Optional[str] = None
	stream: bool = False
	voiceChat: bool = False
	conversationHistory: Optional[List[Any]] = None
	history: Optional[List[Any]] = None


@router.post("/philaguide")
async def chat_route(request: Request, payload: ChatPayload):
	try:
		return await chat(
			request,
			payload.message,
			payload.sessionId,
			stream=payload.stream,
			voice_chat=payload.voiceChat,
			history=payload.conversationHistory or payload.history,
		)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Chat request failed: %s", exc)
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/philaguide")
async def chat_status_route(request: Request):
	try:
		return await chat_status(request)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
