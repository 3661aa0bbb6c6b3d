from __future__ import annotations

from typing import Any

from .config import IDENTIFY_PROMPT
from .errors import ErrorKind, IdentificationError
from .vision_client import BaseVisionClient, error_from_response


def build_generate_payload(media_type: str, data: str) -> dict[str, Any]:
    return {
        "contents": [
            {
                "role": "user",
                "parts": [
                    {"inline_data": {"mime_type": media_type, "data": data}},
                    {"text": IDENTIFY_PROMPT},
                ],
            }
        ]
    }


def extract_candidate_text(body: dict[str, Any]) -> str | None:
    candidates = body.get("candidates") or []
    if not candidates:
        return None
    parts = (candidates[0].get("content") or {}).get("parts") or []
    text = "".join(str(p.get("text", "")) for p in parts if isinstance(p, dict))
    return text or None


class GeminiVisionClient(BaseVisionClient):
    provider_name = "gemini"

    async def request_text(self, media_type: str, data: str) -> str:
        if not self.cfg.gemini_api_key:
            raise IdentificationError("GEMINI_API_KEY is not set", kind=ErrorKind.AUTH)

        url = f"{self.cfg.gemini_base_url.rstrip('/')}/v1beta/models/{self.cfg.gemini_model}:generateContent"
        response = await self._client.post(
            url,
            params={"key": self.cfg.gemini_api_key},
            json=build_generate_payload(media_type, data),
        )
        if response.is_error:
            raise error_from_response(response)

        body = response.json()
        text = extract_candidate_text(body)
        if text is None:
            block_reason = (body.get("promptFeedback") or {}).get("blockReason")
            if block_reason:
                raise IdentificationError(f"prompt blocked: {block_reason}", kind=ErrorKind.PERMISSION)
            raise IdentificationError("no text content in reply", kind=ErrorKind.NETWORK)
        return text
