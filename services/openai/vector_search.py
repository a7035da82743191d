"""Direct semantic search over the stamp vector store."""

import json
import logging
import re
from typing import Any, Dict, List

from openai import AsyncOpenAI

MAX_RESULTS = 5
_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")


def _result_text(item: Any) -> str:
    parts = []
    for content in getattr(item, "content", None) or []:
        text = getattr(content, "text", None)
        if isinstance(text, str):
            parts.append(text)
        elif text is not None and getattr(text, "value", None):
            parts.append(text.value)
    return "\n".join(parts)


def to_stamp_summary(item: Any) -> Dict[str, Any]:
    """Summarize one search hit, reading stamp fields from embedded JSON when present."""
    content = _result_text(item)
    fallback_id = getattr(item, "file_id", None) or getattr(item, "id", None)
    match = _JSON_OBJECT.search(content)
    if match:
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            data = None
        if isinstance(data, dict):
            return {
                "id": data.get("id") or data.get("Id") or fallback_id,
                "title": data.get("title") or data.get("name") or data.get("Name") or "Unknown Stamp",
                "description": data.get("description") or content[:200],
                "country": data.get("country") or data.get("Country") or "Unknown",
                "year": data.get("year") or data.get("IssueYear") or "Unknown",
                "denomination": data.get("denomination") or "Unknown",
                "imageUrl": data.get("imageUrl") or data.get("stampImageUrl") or data.get("StampImageUrl"),
                "score": getattr(item, "score", None),
                "content": content,
            }
    return {
        "id": fallback_id,
        "title": "Stamp Found",
        "description": content[:200],
        "country": "Unknown",
        "year": "Unknown",
        "denomination": "Unknown",
        "imageUrl": None,
        "score": getattr(item, "score", None),
        "content": content,
    }


class VectorStoreSearch:
    """Query the configured vector store and shape the hits for voice clients."""

    def __init__(self, client: AsyncOpenAI, *, vector_store_id: str) -> None:
        if client is None:
            raise ValueError("AsyncOpenAI client is required.")
        self.client = client
        self.vector_store_id = vector_store_id

    async def search(self, query: str, max_results: int = MAX_RESULTS) -> List[Dict[str, Any]]:
        try:
            page = await self.client.vector_stores.search(
                self.vector_store_id,
                query=query,
                max_num_results=max_results,
            )
        except Exception as exc:
            logging.error("Vector store search failed: %s", exc)
            raise
        return [to_stamp_summary(item) for item in getattr(page, "data", None) or []]
