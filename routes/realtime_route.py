"""FastAPI route that hands browsers a realtime voice session."""

import logging
from typing import Optional

from fastapi import APIRouter, HTTPException, Request
from pydantic import BaseModel

from controllers.realtime_controller import create_realtime_session
from utils.errors import AppError

router = APIRouter(prefix="/api")


class RealtimeSessionPayload(BaseModel):
	voice: Optional[str] = None
	instructions: Optional[str] = None


@router.post("/realtime-session")
async def realtime_session_route(request: Request, payload: RealtimeSessionPayload):
	try:
		return await create_realtime_session(request, payload.voice, payload.instructions)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Realtime session creation failed: %s", exc)
		raise HTTPException(status_code=500, detail="Failed to create Realtime session")
