"""Identify a stamp from a photo: vision analysis, then a catalog match."""

import asyncio
import logging
import time
from typing import Any, Dict

from openai import AsyncOpenAI

from services.openai.image_schema import FUNCTION_DEFINITION, FUNCTION_NAME
from services.openai.media_inputs import build_inputs, to_image_data_url
from services.openai.prompts import image_analysis_prompt
from services.openai.response_parser import extract_usage, parse_function_call
from services.stamp_catalog import StampCatalog, stamp_details
from services.thumbnail_generator import ImageNormalizer

MAX_SUGGESTIONS = 4


class StampImageAnalyzer:
    """Ask the vision model whether an image is a stamp and what it shows."""

    def __init__(self, client: AsyncOpenAI, *, model: str = "gpt-4o-mini") -> None:
        if client is None:
            raise ValueError("OpenAI client must be provided.")
        self.client = client
        self.model = model

    async def analyze(self, image_b64: str) -> Dict[str, Any]:
        inputs = build_inputs(
            "You are an expert philatelist examining a photograph.",
            image_analysis_prompt(),
            image_url=to_image_data_url(image_b64),
        )
        try:
            response = await self.client.responses.create(
                model=self.model,
                input=inputs,
                tools=[FUNCTION_DEFINITION],
                tool_choice={"type": "function", "name": FUNCTION_NAME},
            )
        except Exception as exc:
            logging.error("Error during vision analysis: %s", exc)
            raise
        args = parse_function_call(response, tool_name=FUNCTION_NAME)
        return {
            "isStamp": bool(args.get("isStamp")),
            "confidence": float(args.get("confidence") or 0.5),
            "description": args.get("description") or "",
            "country": args.get("country") or "",
            "year": args.get("year") or "",
            "denomination": args.get("denomination") or "",
            "colors": list(args.get("colors") or []),
            "subject": args.get("subject") or "",
            **extract_usage(response),
        }


class ImageSearchService:
    """Normalize the upload, analyze it, and match it against the local catalog."""

    def __init__(
        self,
        analyzer: StampImageAnalyzer,
        catalog: StampCatalog,
        normalizer: ImageNormalizer | None = None,
    ) -> None:
        self.analyzer = analyzer
        self.catalog = catalog
        self.normalizer = normalizer or ImageNormalizer()

    async def search(self, image_bytes: bytes) -> Dict[str, Any]:
        start = time.time()
        # Pillow work is blocking, so it runs in a worker thread.
        image_b64 = await asyncio.to_thread(self.normalizer.to_base64_jpeg, image_bytes)
        analysis = await self.analyzer.analyze(image_b64)
        if not analysis["isStamp"]:
            return {
                "isStamp": False,
                "confidence": analysis["confidence"],
                "message": "This image does not appear to be a stamp.",
            }

        query = " ".join(
            part
            for part in (analysis["description"], analysis["country"], analysis["subject"], " ".join(analysis["colors"]))
            if part
        )
        matches = await self.catalog.find_similar(query)
        best = matches[0] if matches else None
        logging.info("Image search matched %d stamp(s) in %.2fs", len(matches), time.time() - start)
        return {
            "isStamp": True,
            "confidence": analysis["confidence"],
            "analysis": {key: analysis[key] for key in ("description", "country", "year", "denomination", "colors", "subject")},
            "stampDetails": stamp_details(best) if best else None,
            "suggestions": [
                {
                    "name": stamp.get("Name"),
                    "country": stamp.get("Country"),
                    "similarity": stamp["similarity"],
                    "imageUrl": stamp_details(stamp)["imageUrl"],
                }
                for stamp in matches[:MAX_SUGGESTIONS]
            ],
        }
