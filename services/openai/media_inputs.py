"""Build multimodal input payloads for the Responses API."""

from typing import Any, Dict, List


def to_image_data_url(image_b64: str, mime_type: str = "image/jpeg") -> str:
    """Wrap base64 image data in a data URL suitable for vision input."""
    if not image_b64:
        raise ValueError("Image data is required.")
    return f"data:{mime_type};base64,{image_b64}"


def build_inputs(system_prompt: str, user_prompt: str, *, image_url: str) -> List[Dict[str, Any]]:
    """System message, then the instruction text and the image as one user message."""
    return [
        {
            "type": "message",
            "role": "system",
            "content": [{"type": "input_text", "text": system_prompt}],
        },
        {
            "type": "message",
            "role": "user",
            "content": [
                {"type": "input_text", "text": user_prompt},
                {"type": "input_image", "image_url": image_url},
            ],
        },
    ]
