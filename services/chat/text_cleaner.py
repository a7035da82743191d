"""Strip internal references and markup from assistant prose before it reaches users."""

from __future__ import annotations

import re
from typing import List, Pattern, Tuple

STORAGE_URL_PATTERN = re.compile(r"https://[\w.-]+\.blob\.core\.windows\.net/[^\s)\]]+")

# Order matters: internal jargon, then markup, then technical sentences, then whitespace.
_SUBSTITUTIONS: List[Tuple[Pattern[str], str]] = [
	(re.compile(r"download\.json"), "stamp database"),
	(re.compile(r"vector store"), "stamp collection"),
	(re.compile(r"file_search"), "search"),
	(STORAGE_URL_PATTERN, ""),
	(re.compile(r"ref as \S+"), ""),
	(re.compile(r"catalog number [A-Z0-9]+", re.IGNORECASE), ""),
	(re.compile(r"Campbell Paterson Catalogue"), "stamp catalog"),
	(re.compile(r"catalog number"), "catalog"),
	(re.compile(r"```[\s\S]*?```"), ""),
	(re.compile(r"!\[[^\]]*\]\([^)]*\)"), ""),
	(re.compile(r"\*\*([^*]+)\*\*"), r"\1"),
	(re.compile(r"`([^`]+)`"), r"\1"),
	(re.compile(r"\[([^\]]+)\]\([^)]*\)"), r"\1"),
	(re.compile(r"\{[\s\S]*?\}"), ""),
	(re.compile(r"technical details[^.]*\."), ""),
	(re.compile(r"file reference[^.]*\."), ""),
	(re.compile(r"database entry[^.]*\."), ""),
	(re.compile(r"raw data[^.]*\."), ""),
	(re.compile(r"function call[^.]*\."), ""),
	(re.compile(r"\s+"), " "),
	(re.compile(r"\s+\."), "."),
	(re.compile(r"\s+,"), ","),
	(re.compile(r"\s+-\s*"), " - "),
]

_MAX_PASSES = 10


def _clean_once(text: str) -> str:
	for pattern, replacement in _SUBSTITUTIONS:
		text = pattern.sub(replacement, text)
	return text.strip()


def clean_response_text(text: str | None) -> str:
	"""Return user-facing text with storage URLs, catalog jargon, and markup removed.

	The substitution list is re-applied until the text stops changing, so
	removals that join two fragments into a new match are handled and
	``clean_response_text(clean_response_text(x)) == clean_response_text(x)``.
	"""
	if not text:
		return ""
	cleaned = _clean_once(text)
	for _ in range(_MAX_PASSES):
		again = _clean_once(cleaned)
		if again == cleaned:
			break
		cleaned = again
	return cleaned
