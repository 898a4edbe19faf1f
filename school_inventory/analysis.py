"""Optional image classification used to pre-fill the inventory form."""
from __future__ import annotations

import base64
import json
import logging
from typing import Any, Dict, Optional, Union

import requests

logger = logging.getLogger(__name__)

ANALYSIS_PROMPT = (
    "What kind of school equipment is this? Identify category, model, and serial "
    "number if visible. Return format: JSON with category, model, serialNumber."
)

_SUGGESTION_KEYS = ("category", "model", "serialNumber")


def split_data_url(image: Union[bytes, str]) -> tuple[str, str]:
    """Return ``(mime_type, base64_payload)`` for raw bytes or a data URL."""

    if isinstance(image, bytes):
        return "image/jpeg", base64.b64encode(image).decode("ascii")
    header, _, payload = image.partition(",")
    if not payload:
        raise ValueError("Not a data URL")
    mime_type = "image/jpeg"
    if header.startswith("data:"):
        mime_type = header[5:].split(";", 1)[0] or mime_type
    return mime_type, payload


def _extract_suggestions(text: str) -> Optional[Dict[str, str]]:
    cleaned = text.strip()
    if cleaned.startswith("```"):
        cleaned = cleaned.strip("`")
        if cleaned.lower().startswith("json"):
            cleaned = cleaned[4:]
    start = cleaned.find("{")
    end = cleaned.rfind("}")
    if start == -1 or end <= start:
        return None
    payload = json.loads(cleaned[start : end + 1])
    if not isinstance(payload, dict):
        return None
    suggestions = {
        key: str(payload[key]).strip()
        for key in _SUGGESTION_KEYS
        if payload.get(key) not in (None, "")
    }
    return suggestions or None


class ImageAnalyzer:
    """Best-effort client for a ``generateContent`` style vision endpoint.

    Any failure yields ``None``; callers never block on the result.
    """

    def __init__(
        self,
        api_key: Optional[str],
        *,
        model: str = "gemini-3-flash-preview",
        endpoint: str = "https://generativelanguage.googleapis.com/v1beta/models",
        timeout: float = 15.0,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout

    @property
    def enabled(self) -> bool:
        return bool(self.api_key)

    def analyze(self, image: Union[bytes, str]) -> Optional[Dict[str, str]]:
        if not self.enabled:
            logger.debug("Image analysis skipped: no API key configured")
            return None
        try:
            mime_type, payload = split_data_url(image)
            response = requests.post(
                f"{self.endpoint}/{self.model}:generateContent",
                params={"key": self.api_key},
                json=self._build_request(mime_type, payload),
                timeout=self.timeout,
            )
            response.raise_for_status()
            text = self._response_text(response.json())
            if not text:
                return None
            return _extract_suggestions(text)
        except (requests.RequestException, ValueError) as exc:
            logger.warning("Image analysis failed, skipping: %s", exc)
            return None

    @staticmethod
    def _build_request(mime_type: str, payload: str) -> Dict[str, Any]:
        return {
            "contents": [
                {
                    "parts": [
                        {"text": ANALYSIS_PROMPT},
                        {"inlineData": {"mimeType": mime_type, "data": payload}},
                    ]
                }
            ]
        }

    @staticmethod
    def _response_text(body: Any) -> str:
        if not isinstance(body, dict):
            return ""
        parts = []
        for candidate in body.get("candidates") or []:
            content = candidate.get("content") if isinstance(candidate, dict) else None
            for part in (content or {}).get("parts") or []:
                if isinstance(part, dict) and part.get("text"):
                    parts.append(str(part["text"]))
        return "".join(parts)


__all__ = ["ImageAnalyzer", "split_data_url"]
