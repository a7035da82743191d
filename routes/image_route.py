import logging
from typing import Optional

from fastapi import APIRouter, File, HTTPException, Request, UploadFile

from controllers.image_controller import search_by_image
from utils.errors import AppError

router = APIRouter(prefix="/api")


@router.post("/search-by-image")
async def search_by_image_route(request: Request, image: Optional[UploadFile] = File(None)):
	"""Identify the stamp in a multipart ``image`` upload."""
	try:
		return await search_by_image(request, image)
	except (HTTPException, AppError):
		raise
	except Exception as exc:
		logging.error("Image search failed: %s", exc)
		raise HTTPException(status_code=500, detail="Failed to process image. Please try again.")
