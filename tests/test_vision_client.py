import json
import tempfile
import unittest
from pathlib import Path

import httpx
from PIL import Image

from journal_stack.anthropic_client import AnthropicVisionClient, extract_reply_text
from journal_stack.config import IDENTIFY_PROMPT, JournalConfig
from journal_stack.errors import ErrorKind, USER_MESSAGES
from journal_stack.gemini_client import GeminiVisionClient, extract_candidate_text
from journal_stack.vision_client import classify_error, get_client


def _config(tmp: Path, **overrides) -> JournalConfig:
    base = dict(
        media_dir=tmp / "media",
        sqlite_path=tmp / "journal.db",
        anthropic_api_key="test-key",
        gemini_api_key="gem-key",
        anthropic_base_url="https://anthropic.test",
        gemini_base_url="https://gemini.test",
    )
    base.update(overrides)
    return JournalConfig(**base)


def _write_image(path: Path, size=(64, 48)) -> str:
    Image.new("RGB", size, (30, 160, 60)).save(path, format="JPEG")
    return str(path)


def _anthropic_reply(text: str) -> dict:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "content": [{"type": "text", "text": text}],
        "model": "claude",
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 10, "output_tokens": 20},
    }


class ClassifyErrorTests(unittest.TestCase):
    def test_status_codes(self):
        self.assertEqual(classify_error(401), ErrorKind.AUTH)
        self.assertEqual(classify_error(403), ErrorKind.PERMISSION)
        self.assertEqual(classify_error(404), ErrorKind.NOT_FOUND)
        self.assertEqual(classify_error(429), ErrorKind.QUOTA)

    def test_detail_substrings(self):
        self.assertEqual(classify_error(400, "API key not valid. Please pass a valid API key."), ErrorKind.AUTH)
        self.assertEqual(classify_error(None, "models/gemini-x is NOT_FOUND"), ErrorKind.NOT_FOUND)
        self.assertEqual(classify_error(None, "RESOURCE_EXHAUSTED: Quota exceeded"), ErrorKind.QUOTA)
        self.assertEqual(classify_error(None, "Permission denied on resource"), ErrorKind.PERMISSION)

    def test_unmatched_falls_through_to_network(self):
        self.assertEqual(classify_error(500, "internal error"), ErrorKind.NETWORK)
        self.assertEqual(classify_error(None, ""), ErrorKind.NETWORK)

    def test_every_kind_has_distinct_message(self):
        messages = {USER_MESSAGES[k] for k in ErrorKind}
        self.assertEqual(len(messages), len(ErrorKind))


class ReplyExtractionTests(unittest.TestCase):
    def test_anthropic_first_text_block(self):
        body = {"content": [{"type": "tool_use"}, {"type": "text", "text": "NAME: A"}]}
        self.assertEqual(extract_reply_text(body), "NAME: A")
        self.assertIsNone(extract_reply_text({"content": []}))

    def test_gemini_joins_parts(self):
        body = {"candidates": [{"content": {"parts": [{"text": "NAME: B\n"}, {"text": "FACT: c"}]}}]}
        self.assertEqual(extract_candidate_text(body), "NAME: B\nFACT: c")
        self.assertIsNone(extract_candidate_text({"candidates": []}))


class AnthropicClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.image_path = _write_image(self.tmp / "leaf.jpg")
        self.requests: list[httpx.Request] = []

    async def asyncTearDown(self):
        self._tmp.cleanup()

    def _client(self, handler, **overrides) -> AnthropicVisionClient:
        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        return AnthropicVisionClient(_config(self.tmp, **overrides), transport=httpx.MockTransport(_record))

    async def test_success_parses_reply(self):
        client = self._client(lambda r: httpx.Response(200, json=_anthropic_reply("NAME: Fern\nFACT: Older than dinosaurs.")))
        async with client:
            result = await client.identify(self.image_path)
        self.assertTrue(result.ok)
        self.assertEqual(result.identification.name, "Fern")
        self.assertEqual(result.identification.fact, "Older than dinosaurs.")

        request = self.requests[0]
        self.assertEqual(str(request.url), "https://anthropic.test/v1/messages")
        self.assertEqual(request.headers["x-api-key"], "test-key")
        self.assertEqual(request.headers["anthropic-version"], "2023-06-01")
        body = json.loads(request.content)
        content = body["messages"][0]["content"]
        self.assertEqual(content[0]["type"], "image")
        self.assertEqual(content[0]["source"]["media_type"], "image/jpeg")
        self.assertTrue(content[0]["source"]["data"])
        self.assertEqual(content[1]["text"], IDENTIFY_PROMPT)

    async def test_http_errors_are_classified(self):
        cases = {
            401: ErrorKind.AUTH,
            403: ErrorKind.PERMISSION,
            404: ErrorKind.NOT_FOUND,
            429: ErrorKind.QUOTA,
            500: ErrorKind.NETWORK,
        }
        for status, kind in cases.items():
            client = self._client(lambda r, s=status: httpx.Response(s, json={"error": {"message": "nope"}}))
            async with client:
                result = await client.identify(self.image_path)
            self.assertFalse(result.ok)
            self.assertEqual(result.error.kind, kind, status)
            self.assertEqual(result.error.user_message, USER_MESSAGES[kind])

    async def test_missing_key_fails_without_request(self):
        client = self._client(lambda r: httpx.Response(200, json=_anthropic_reply("x")), anthropic_api_key=None)
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.error.kind, ErrorKind.AUTH)
        self.assertEqual(self.requests, [])

    async def test_transport_error_never_raises(self):
        def _boom(request):
            raise httpx.ConnectError("connection refused", request=request)

        client = self._client(_boom)
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.error.kind, ErrorKind.NETWORK)

    async def test_reply_without_text(self):
        client = self._client(lambda r: httpx.Response(200, json={"content": []}))
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.error.kind, ErrorKind.NETWORK)

    async def test_missing_image_is_a_failure(self):
        client = self._client(lambda r: httpx.Response(200, json=_anthropic_reply("NAME: x")))
        async with client:
            result = await client.identify(str(self.tmp / "missing.jpg"))
        self.assertFalse(result.ok)
        self.assertEqual(result.error.kind, ErrorKind.STORAGE)
        self.assertEqual(result.error.user_message, USER_MESSAGES[ErrorKind.STORAGE])
        self.assertEqual(self.requests, [])


class GeminiClientTests(unittest.IsolatedAsyncioTestCase):
    async def asyncSetUp(self):
        self._tmp = tempfile.TemporaryDirectory()
        self.tmp = Path(self._tmp.name)
        self.image_path = _write_image(self.tmp / "bug.jpg")

    async def asyncTearDown(self):
        self._tmp.cleanup()

    async def test_success(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(
                200, json={"candidates": [{"content": {"parts": [{"text": "NAME: Bee\nFACT: Makes honey."}]}}]}
            )

        cfg = _config(self.tmp, vision_provider="gemini")
        client = get_client(cfg, transport=httpx.MockTransport(handler))
        self.assertIsInstance(client, GeminiVisionClient)
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.identification.name, "Bee")
        self.assertEqual(seen[0].url.params["key"], "gem-key")
        self.assertIn(":generateContent", seen[0].url.path)
        part = json.loads(seen[0].content)["contents"][0]["parts"][0]
        self.assertEqual(part["inline_data"]["mime_type"], "image/jpeg")

    async def test_quota_detail(self):
        def handler(request):
            return httpx.Response(400, json={"error": {"status": "RESOURCE_EXHAUSTED", "message": "Quota exceeded"}})

        client = GeminiVisionClient(_config(self.tmp), transport=httpx.MockTransport(handler))
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.error.kind, ErrorKind.QUOTA)

    async def test_blocked_prompt(self):
        def handler(request):
            return httpx.Response(200, json={"candidates": [], "promptFeedback": {"blockReason": "SAFETY"}})

        client = GeminiVisionClient(_config(self.tmp), transport=httpx.MockTransport(handler))
        async with client:
            result = await client.identify(self.image_path)
        self.assertEqual(result.error.kind, ErrorKind.PERMISSION)


class RegistryTests(unittest.TestCase):
    def test_unknown_provider(self):
        with tempfile.TemporaryDirectory() as tmp:
            with self.assertRaises(ValueError):
                get_client(_config(Path(tmp), vision_provider="nope"))


if __name__ == "__main__":
    unittest.main()
