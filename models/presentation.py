"""Card and carousel shapes rendered by the client."""

from __future__ import annotations

from typing import Any, Dict, List, Sequence

from models.stamp_record import StampRecord

MAX_CAROUSEL_ITEMS = 5


def _subtitle(stamp: StampRecord) -> str:
	return f"{stamp.country} • {stamp.year or 'Unknown'} • {stamp.denomination}"


def _content(stamp: StampRecord) -> List[Dict[str, Any]]:
	year = stamp.year or "Unknown"
	return [
		{
			"section": "Overview",
			"text": (
				f"{stamp.name} from {stamp.country}, issued in {year}. "
				f"Denomination: {stamp.denomination}. Color: {stamp.color or 'Unknown'}."
			),
		},
		{
			"section": "Details",
			"details": [
				{"label": "Catalog Code", "value": stamp.catalog_code or "N/A"},
				{"label": "Issue Date", "value": stamp.issue_date or "N/A"},
				{"label": "Color", "value": stamp.color or "N/A"},
				{"label": "Paper Type", "value": stamp.paper_type or "N/A"},
			],
		},
	]


def _significance(stamp: StampRecord) -> str:
	return f"A {stamp.color or 'colorful'} stamp from {stamp.country} issued in {stamp.year or 'Unknown'}."


def _special_notes(stamp: StampRecord) -> str:
	return f"Part of the {stamp.series} series." if stamp.series else ""


def build_card(stamp: StampRecord) -> Dict[str, Any]:
	"""Return the single-stamp presentation."""
	return {
		"type": "card",
		"id": stamp.id,
		"title": stamp.title,
		"subtitle": _subtitle(stamp),
		"image": stamp.image,
		"content": _content(stamp),
		"significance": _significance(stamp),
		"specialNotes": _special_notes(stamp),
	}


def build_carousel(stamps: Sequence[StampRecord]) -> Dict[str, Any]:
	"""Return the multi-stamp presentation, keeping the provider's ordering."""
	items = list(stamps)[:MAX_CAROUSEL_ITEMS]
	return {
		"type": "carousel",
		"title": f"Found {len(items)} stamp{'s' if len(items) != 1 else ''}",
		"items": [
			{
				"id": stamp.id,
				"title": stamp.title,
				"subtitle": _subtitle(stamp),
				"image": stamp.image,
				"content": _content(stamp),
				"significance": _significance(stamp),
				"specialNotes": _special_notes(stamp),
				"summary": f"{stamp.denomination} {stamp.color or 'Unknown'}",
				"marketValue": "Value varies by condition",
				"quickFacts": [
					f"{stamp.country} {stamp.year or 'Unknown'}",
					stamp.color or "Unknown",
					stamp.denomination,
				],
			}
			for stamp in items
		],
	}


def build_presentation(stamps: Sequence[StampRecord]) -> Dict[str, Any] | None:
	"""Card for one stamp, carousel for several, nothing for none."""
	if not stamps:
		return None
	if len(stamps) == 1:
		return build_card(stamps[0])
	return build_carousel(stamps)
