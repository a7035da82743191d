"""Best-effort extraction of stamp records from free text.

Only used when the assistant produced no structured tool output. The
results are lossy guesses pulled out with regular expressions and are
never treated as authoritative: callers report them separately from
stamps returned through tool calls.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from models.stamp_record import NO_IMAGE_URL
from services.chat.text_cleaner import STORAGE_URL_PATTERN

_JSON_BLOCK = re.compile(r"```json\s*(\{[\s\S]*?\})\s*```")
_BARE_JSON = re.compile(r"\{[\s\S]*\}")
_STAMP_PATTERNS = [
	re.compile(r'"([^"]+)"\s+stamp\s+from\s+([^,.\n]+)', re.IGNORECASE),
	re.compile(r"\b([A-Z][\w'-]*(?:\s+[A-Z0-9][\w'/-]*)*)\s+stamp\s+from\s+([^,.\n]+)"),
]
_YEAR = re.compile(r"\b(1[89]\d{2}|20\d{2})\b")
_DENOMINATION = re.compile(r"\b(\d+(?:/\d+)?\s*(?:d|c|p|s)\b)", re.IGNORECASE)
_COLOR = re.compile(r"\b(blue|red|green|yellow|brown|grey|gray|black|white|orange|purple|pink)\b", re.IGNORECASE)
_BOLD = re.compile(r"\*\*([^*]+)\*\*")
_COUNTRY_LINE = re.compile(r"Country[: ]+([^\n]+)", re.IGNORECASE)
_YEAR_LINE = re.compile(r"Year[: ]+([^\n]+)", re.IGNORECASE)
_DENOMINATION_LINE = re.compile(r"Denomination[: ]+([^\n]+)", re.IGNORECASE)


@dataclass
class ExtractionResult:
	stamps: List[Dict[str, Any]] = field(default_factory=list)
	source: str = "none"


def _stamps_from_json(candidate: str) -> Optional[List[Dict[str, Any]]]:
	try:
		data = json.loads(candidate)
	except json.JSONDecodeError:
		return None
	if isinstance(data, dict) and isinstance(data.get("stamps"), list):
		return [item for item in data["stamps"] if isinstance(item, dict)]
	return None


def extract_stamps_from_conversation(text: str) -> List[Dict[str, Any]]:
	"""Pull ``<name> stamp from <country>`` mentions out of prose."""
	stamps: List[Dict[str, Any]] = []
	seen = set()
	year_match = _YEAR.search(text)
	year = year_match.group(1) if year_match else "Unknown"
	denomination_match = _DENOMINATION.search(text)
	denomination = denomination_match.group(1).replace(" ", "") if denomination_match else ""
	color_match = _COLOR.search(text)
	image_match = STORAGE_URL_PATTERN.search(text)

	for pattern in _STAMP_PATTERNS:
		for match in pattern.finditer(text):
			name = match.group(1).strip()
			country = match.group(2).strip()
			if not name or not country or (name.lower(), country.lower()) in seen:
				continue
			seen.add((name.lower(), country.lower()))
			symbol = denomination[-1].lower() if denomination else ""
			stamps.append(
				{
					"Id": f"extracted-{len(stamps)}",
					"Name": name,
					"Country": country,
					"IssueYear": year,
					"DenominationValue": denomination[:-1] if denomination else "",
					"DenominationSymbol": symbol,
					"Color": color_match.group(1).lower() if color_match else "Unknown",
					"StampImageUrl": image_match.group(0) if image_match else NO_IMAGE_URL,
					"IssueDate": f"{year}-01-01" if year != "Unknown" else None,
				}
			)
	return stamps


def extract_stamp_info_from_text(text: str) -> Optional[Dict[str, Any]]:
	"""Read a labelled stamp description that links to a catalog image."""
	image_match = STORAGE_URL_PATTERN.search(text)
	if not image_match:
		return None
	name = _BOLD.search(text)
	country = _COUNTRY_LINE.search(text)
	year = _YEAR_LINE.search(text) or _YEAR.search(text)
	denomination = _DENOMINATION_LINE.search(text)
	return {
		"Id": "extracted-0",
		"Name": name.group(1).strip() if name else "Stamp",
		"Country": country.group(1).strip() if country else "Unknown",
		"IssueYear": year.group(1).strip() if year else "Unknown",
		"Denomination": denomination.group(1).strip() if denomination else "Unknown",
		"StampImageUrl": image_match.group(0),
	}


def extract_stamps(text: str | None) -> ExtractionResult:
	"""Try, in order: fenced JSON, bare JSON, labelled image description, prose mentions."""
	if not text:
		return ExtractionResult()

	block = _JSON_BLOCK.search(text)
	if block:
		stamps = _stamps_from_json(block.group(1))
		if stamps is not None:
			return ExtractionResult(stamps=stamps, source="json_block")

	bare = _BARE_JSON.search(text)
	if bare:
		stamps = _stamps_from_json(bare.group(0))
		if stamps is not None:
			return ExtractionResult(stamps=stamps, source="json")

	info = extract_stamp_info_from_text(text)
	if info:
		return ExtractionResult(stamps=[info], source="image_reference")

	stamps = extract_stamps_from_conversation(text)
	if stamps:
		logging.info("Extracted %d stamp mention(s) from prose", len(stamps))
		return ExtractionResult(stamps=stamps, source="prose")
	return ExtractionResult()
