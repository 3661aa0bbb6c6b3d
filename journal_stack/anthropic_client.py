from __future__ import annotations

from typing import Any

from .config import IDENTIFY_PROMPT
from .errors import ErrorKind, IdentificationError
from .vision_client import BaseVisionClient, error_from_response


def build_messages_payload(model: str, max_tokens: int, media_type: str, data: str) -> dict[str, Any]:
    return {
        "model": model,
        "max_tokens": max_tokens,
        "messages": [
            {
                "role": "user",
                "content": [
                    {
                        "type": "image",
                        "source": {"type": "base64", "media_type": media_type, "data": data},
                    },
                    {"type": "text", "text": IDENTIFY_PROMPT},
                ],
            }
        ],
    }


def extract_reply_text(body: dict[str, Any]) -> str | None:
    for block in body.get("content") or []:
        if block.get("type") == "text" and block.get("text"):
            return str(block["text"])
    return None


class AnthropicVisionClient(BaseVisionClient):
    provider_name = "anthropic"

    async def request_text(self, media_type: str, data: str) -> str:
        if not self.cfg.anthropic_api_key:
            raise IdentificationError("ANTHROPIC_API_KEY is not set", kind=ErrorKind.AUTH)

        url = f"{self.cfg.anthropic_base_url.rstrip('/')}/v1/messages"
        headers = {
            "x-api-key": self.cfg.anthropic_api_key,
            "anthropic-version": self.cfg.anthropic_version,
            "content-type": "application/json",
        }
        payload = build_messages_payload(self.cfg.anthropic_model, self.cfg.max_tokens, media_type, data)
        response = await self._client.post(url, json=payload, headers=headers)
        if response.is_error:
            raise error_from_response(response)

        text = extract_reply_text(response.json())
        if text is None:
            raise IdentificationError("no text content in reply", kind=ErrorKind.NETWORK)
        return text
