"""Normalized view over the stamp dictionaries returned in tool-call arguments."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

NO_IMAGE_URL = "/images/stamps/no-image-available.png"


def _first(raw: Dict[str, Any], *keys: str) -> str:
	"""Return the first non-empty value among `keys`, stringified and stripped."""
	for key in keys:
		value = raw.get(key)
		if value is None:
			continue
		text = str(value).strip()
		if text:
			return text
	return ""


@dataclass
class StampRecord:
	"""One stamp as described by the model.

	The assistant is inconsistent about casing (``Name`` vs ``name``) and
	nesting (``stamp_core.name``), so every field is resolved from a list
	of known aliases. The original dictionary is kept in `raw` so it can be
	forwarded unchanged in ``raw_stamp_data`` events.
	"""

	id: str = ""
	name: str = ""
	country: str = ""
	year: str = ""
	issue_date: str = ""
	denomination_value: str = ""
	denomination_symbol: str = ""
	color: str = ""
	series: str = ""
	catalog_code: str = ""
	paper_type: str = ""
	image_url: str = ""
	raw: Dict[str, Any] = field(default_factory=dict)

	@classmethod
	def from_args(cls, raw: Dict[str, Any]) -> "StampRecord":
		core = raw.get("stamp_core") if isinstance(raw.get("stamp_core"), dict) else {}
		issue_date = _first(raw, "IssueDate", "issueDate")
		year = _first(raw, "IssueYear", "issueYear", "year", "Year")
		if not year and issue_date:
			year = issue_date.split("-")[0].strip()
		return cls(
			id=_first(raw, "Id", "id", "stampId"),
			name=_first(core, "name") or _first(raw, "name", "Name"),
			country=_first(raw, "country", "Country", "countryName"),
			year=year,
			issue_date=issue_date,
			denomination_value=_first(raw, "DenominationValue", "denominationValue"),
			denomination_symbol=_first(raw, "DenominationSymbol", "denominationSymbol"),
			color=_first(raw, "color", "Color", "colorName"),
			series=_first(raw, "seriesName", "SeriesName", "series"),
			catalog_code=_first(raw, "catalogNumber", "StampCatalogCode", "CatalogNumber"),
			paper_type=_first(raw, "paperType", "PaperType"),
			image_url=_first(raw, "stampImageUrl", "StampImageUrl", "image", "StampImage"),
			raw=dict(raw),
		)

	def has_identity(self) -> bool:
		"""True when the record names at least one of name, country, or year."""
		return bool(self.name or self.country or self.year)

	@property
	def denomination(self) -> str:
		return f"{self.denomination_value}{self.denomination_symbol}"

	@property
	def title(self) -> str:
		return self.name or self.catalog_code or "Stamp"

	@property
	def image(self) -> str:
		return self.image_url or NO_IMAGE_URL

	def preview(self) -> Dict[str, Any]:
		"""Compact summary sent in ``stamp_preview`` events."""
		return {
			"name": self.name or "Unknown",
			"country": self.country or "Unknown",
			"year": self.year or "Unknown",
			"denomination": self.denomination,
			"color": self.color or "Unknown",
		}


def parse_stamp_list(args: Any) -> Optional[list]:
	"""Return the ``stamps`` list from tool-call arguments, or None if absent."""
	if not isinstance(args, dict):
		return None
	stamps = args.get("stamps")
	if not isinstance(stamps, list):
		return None
	return [item for item in stamps if isinstance(item, dict)]
