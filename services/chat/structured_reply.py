"""Turn the JSON envelope the knowledge base model may return into display text."""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from models.stamp_record import NO_IMAGE_URL

_UUID = re.compile(r"[a-f0-9]{8}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{4}-[a-f0-9]{12}", re.IGNORECASE)
MAX_COMPARISON_IDS = 3

CARD_FIELDS = [
	("Stamp Name", "stampName"),
	("Country", "country"),
	("ID", "id"),
	("Image URL", "imageUrl"),
	("Description", "description"),
	("Series", "series"),
	("Year", "year"),
	("Denomination", "denomination"),
	("Catalog Number", "catalogNumber"),
	("Theme", "theme"),
	("Technical Details", "technicalDetails"),
]


@dataclass
class InterpretedReply:
	content: str
	structured: Optional[Dict[str, Any]] = None


def find_structured(text: str) -> Optional[Dict[str, Any]]:
	"""Return the outermost ``{...}`` in `text` if it parses to an object with a ``mode``."""
	start = text.find("{")
	end = text.rfind("}")
	if start == -1 or end <= start:
		return None
	try:
		parsed = json.loads(text[start:end + 1])
	except json.JSONDecodeError:
		return None
	if isinstance(parsed, dict) and parsed.get("mode"):
		return parsed
	return None


def _card_block(card: Dict[str, Any]) -> str:
	lines = ["## Stamp Information"]
	for label, key in CARD_FIELDS:
		value = card.get(key) or ""
		if key == "imageUrl" and not value:
			value = NO_IMAGE_URL
		lines.append(f"**{label}**: {value}")
	return "\n".join(lines)


def _value_sentence(structured: Dict[str, Any]) -> str:
	sentence = f"The mint value for the {structured.get('denomination') or 'stamp'}"
	if structured.get("color"):
		sentence += f" {structured['color']}"
	sentence += " stamp"
	if structured.get("year"):
		sentence += f" from {structured['year']}"
	if structured.get("series"):
		sentence += f" ({structured['series']} series)"
	return sentence + f" is ${structured['mintValue']} NZD."


def interpret_reply(text: str, *, clarify_lead: str = "To narrow this down:") -> InterpretedReply:
	"""Render the reply's ``mode`` envelope; plain prose is returned untouched.

	Supported modes are ``clarify``, ``cards`` (base issue first),
	``comparison``, ``educational`` and ``value``. When the text mentions
	a comparison but carries no envelope, up to three stamp UUIDs found
	in it are turned into a comparison envelope.
	"""
	text = text or ""
	structured = find_structured(text)
	lowered = text.lower()
	if structured is None and ("compare" in lowered or "comparison" in lowered):
		ids = _UUID.findall(text)
		if ids:
			structured = {"mode": "comparison", "stampIds": ids[:MAX_COMPARISON_IDS]}

	content = text
	if structured is None:
		return InterpretedReply(content=content)

	mode = structured.get("mode")
	if mode == "clarify" and isinstance(structured.get("clarifyingQuestions"), list):
		questions: List[str] = [q for q in structured["clarifyingQuestions"] if q]
		if questions:
			content = clarify_lead + "\n" + "\n".join(f"- {q}" for q in questions)
	elif mode == "cards" and isinstance(structured.get("cards"), list):
		cards = [card for card in structured["cards"] if isinstance(card, dict)]
		# sorted() is stable, so provider order is kept within base and variety groups.
		cards = sorted(cards, key=lambda card: not card.get("isBase"))
		content = "\n\n".join(_card_block(card) for card in cards)
	elif mode == "comparison" and isinstance(structured.get("stampIds"), list):
		ids = [stamp_id for stamp_id in structured["stampIds"] if stamp_id]
		if ids:
			content = f"Opening comparison view for {len(ids)} stamp{'s' if len(ids) > 1 else ''}..."
	elif mode == "educational" and isinstance(structured.get("educationalText"), str):
		content = structured["educationalText"]
	elif mode == "value" and structured.get("mintValue"):
		content = _value_sentence(structured)
	return InterpretedReply(content=content, structured=structured)
