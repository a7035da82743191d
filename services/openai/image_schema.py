"""Schema for the stamp image analysis tool."""

from typing import Any, Dict

FUNCTION_NAME = "report_stamp_analysis"

FUNCTION_DEFINITION: Dict[str, Any] = {
    "type": "function",
    "name": FUNCTION_NAME,
    "description": "Report whether the image shows a postage stamp and describe what is visible.",
    "parameters": {
        "type": "object",
        "properties": {
            "isStamp": {
                "type": "boolean",
                "description": "True only for postage stamps, not coins, banknotes, or labels.",
            },
            "confidence": {
                "type": "number",
                "description": "Confidence in the isStamp judgement, between 0 and 1.",
            },
            "description": {
                "type": "string",
                "description": "Visual description: subject, text elements, distinctive features.",
            },
            "country": {"type": "string", "description": "Issuing country if visible, else empty."},
            "year": {"type": "string", "description": "Year or era if visible, else empty."},
            "denomination": {"type": "string", "description": "Face value if visible, else empty."},
            "colors": {
                "type": "array",
                "items": {"type": "string"},
                "description": "Dominant colors of the design.",
            },
            "subject": {"type": "string", "description": "Main subject or theme."},
        },
        "required": ["isStamp", "confidence", "description", "country", "year", "denomination", "colors", "subject"],
        "additionalProperties": False,
    },
    "strict": True,
}
