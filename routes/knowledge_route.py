"""FastAPI routes for the vector-store knowledge base."""

import logging
from typing import Any, Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.knowledge_controller import (
	ask_knowledge_base,
	knowledge_base_status,
	voice_vector_search,
	voice_vector_search_status,
)
from utils.errors import AppError

router = APIRouter(prefix="/api")


class KnowledgePayload(BaseModel):
	message: Any = None
	sessionId: Any = None
	isVoiceChat: bool = False


class VoiceSearchPayload(BaseModel):
	transcript: Any = None
	sessionId: Any = None
	mode: str = "precise"


@router.post("/philaguide-v2")
async def knowledge_route(request: Request, payload: KnowledgePayload):
	try:
		return await ask_knowledge_base(request, payload.message, payload.sessionId)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Knowledge base request failed: %s", exc)
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/philaguide-v2")
async def knowledge_status_route(request: Request, sessionId: Optional[str] = None):
	try:
		return await knowledge_base_status(request, sessionId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))


@router.post("/voice-vector-search")
async def voice_vector_search_route(request: Request, payload: VoiceSearchPayload):
	try:
		return await voice_vector_search(request, payload.transcript, payload.sessionId)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Voice vector search failed: %s", exc)
		raise HTTPException(status_code=500, detail=str(exc))


@router.get("/voice-vector-search")
async def voice_vector_search_status_route(request: Request, sessionId: Optional[str] = None):
	try:
		return await voice_vector_search_status(request, sessionId)
	except HTTPException:
		raise
	except Exception as exc:
		raise HTTPException(status_code=500, detail=str(exc))
