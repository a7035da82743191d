"""Local stamp catalog used to match image descriptions against known stamps.

The catalog is a JSON array of stamp objects, each with a
``visualDescription`` written ahead of time. Matching is plain term
overlap between the vision model's description and each stamp's name,
country, color and visual description.
"""

from __future__ import annotations

import json
import logging
import os
from typing import Any, Dict, List, Optional

import aiofiles

from models.stamp_record import NO_IMAGE_URL

MIN_TERM_LENGTH = 3
MAX_MATCHES = 5


def _stamp_text(stamp: Dict[str, Any]) -> str:
    return " ".join(
        str(stamp.get(key) or "") for key in ("Name", "Country", "Color", "visualDescription")
    ).lower()


class StampCatalog:
    """Lazy-loaded, in-memory view of the catalog file."""

    def __init__(self, path: str) -> None:
        self.path = path
        self._stamps: Optional[List[Dict[str, Any]]] = None

    async def load(self) -> List[Dict[str, Any]]:
        if self._stamps is not None:
            return self._stamps
        if not os.path.isfile(self.path):
            logging.warning("Stamp catalog %s not found; image matches will be empty", self.path)
            self._stamps = []
            return self._stamps
        async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
            raw = await f.read()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            logging.error("Stamp catalog %s is not valid JSON: %s", self.path, exc)
            raise
        self._stamps = [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []
        logging.info("Loaded %d catalog stamps from %s", len(self._stamps), self.path)
        return self._stamps

    async def find_similar(self, description: str, limit: int = MAX_MATCHES) -> List[Dict[str, Any]]:
        """Return up to `limit` stamps sharing terms with `description`, best first."""
        terms = [term for term in (description or "").lower().split() if len(term) >= MIN_TERM_LENGTH]
        if not terms:
            return []
        scored = []
        for stamp in await self.load():
            if not stamp.get("visualDescription"):
                continue
            text = _stamp_text(stamp)
            matches = sum(1 for term in terms if term in text)
            if matches:
                scored.append({**stamp, "similarity": min(matches / len(terms), 1.0)})
        scored.sort(key=lambda stamp: stamp["similarity"], reverse=True)
        return scored[:limit]


def stamp_details(stamp: Dict[str, Any]) -> Dict[str, Any]:
    """Shape a catalog entry for the image search response."""
    return {
        "name": stamp.get("Name"),
        "country": stamp.get("Country"),
        "denomination": f"{stamp.get('DenominationValue') or ''}{stamp.get('DenominationSymbol') or ''}",
        "year": stamp.get("IssueYear") or "Unknown",
        "color": stamp.get("Color") or "Unknown",
        "description": stamp.get("visualDescription") or "No description available",
        "imageUrl": stamp.get("StampImageUrl") or NO_IMAGE_URL,
    }
