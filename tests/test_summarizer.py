"""Unit tests for the summarizer backends."""

import unittest
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import aiohttp
import openai

from linkpost.config import Settings
from linkpost.core.summarizer import (
    HuggingFaceSummarizer,
    OpenAISummarizer,
    SummarizerError,
    build_summarizer,
)


class FakeResponse:
    def __init__(self, status=200, payload=None, error=None):
        self.status = status
        self.payload = payload
        self.error = error

    async def __aenter__(self):
        if self.error:
            raise self.error
        return self

    async def __aexit__(self, *exc):
        return False

    async def json(self, content_type=None):
        return self.payload


def hf_with(response):
    summarizer = HuggingFaceSummarizer(replace(Settings(), summarizer_token="hf_test"))
    summarizer._session = MagicMock()
    summarizer._session.post = MagicMock(return_value=response)
    return summarizer


class BuildSummarizerTests(unittest.TestCase):
    def test_disabled_without_credentials(self):
        self.assertIsNone(build_summarizer(Settings()))

    def test_huggingface(self):
        summarizer = build_summarizer(replace(Settings(), summarizer_token="hf_test"))
        self.assertIsInstance(summarizer, HuggingFaceSummarizer)
        self.assertTrue(summarizer.url.endswith("/facebook/bart-large-cnn"))

    def test_openai(self):
        settings = replace(Settings(), summarizer_provider="openai", openai_api_key="sk-test")
        self.assertIsInstance(build_summarizer(settings), OpenAISummarizer)


class HuggingFaceSummarizerTests(unittest.IsolatedAsyncioTestCase):
    async def test_summary_text_returned(self):
        summarizer = hf_with(FakeResponse(payload=[{"summary_text": "A concise summary."}]))
        self.assertEqual(await summarizer.summarize("prompt"), "A concise summary.")
        payload = summarizer._session.post.call_args.kwargs["json"]
        self.assertEqual(payload["inputs"], "prompt")
        self.assertEqual(payload["parameters"]["max_length"], 350)

    async def test_http_error(self):
        summarizer = hf_with(FakeResponse(status=503, payload={"error": "loading"}))
        with self.assertRaises(SummarizerError):
            await summarizer.summarize("prompt")

    async def test_unexpected_shape(self):
        summarizer = hf_with(FakeResponse(payload={"generated_text": "nope"}))
        with self.assertRaises(SummarizerError):
            await summarizer.summarize("prompt")

    async def test_network_error(self):
        summarizer = hf_with(FakeResponse(error=aiohttp.ClientConnectionError("refused")))
        with self.assertRaises(SummarizerError):
            await summarizer.summarize("prompt")
        summarizer._session.post.assert_called_once()


class OpenAISummarizerTests(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        settings = replace(Settings(), summarizer_provider="openai", openai_api_key="sk-test")
        self.summarizer = OpenAISummarizer(settings)
        self.create = AsyncMock()
        self.summarizer.client = MagicMock()
        self.summarizer.client.chat.completions.create = self.create

    async def test_completion_text(self):
        message = SimpleNamespace(content="Post body from the model.")
        self.create.return_value = SimpleNamespace(choices=[SimpleNamespace(message=message)])
        self.assertEqual(await self.summarizer.summarize("prompt"), "Post body from the model.")
        self.assertEqual(self.create.await_args.kwargs["model"], "gpt-4o-mini")

    async def test_api_error(self):
        self.create.side_effect = openai.OpenAIError("quota exceeded")
        with self.assertRaises(SummarizerError):
            await self.summarizer.summarize("prompt")

    async def test_empty_completion(self):
        self.create.return_value = SimpleNamespace(choices=[])
        with self.assertRaises(SummarizerError):
            await self.summarizer.summarize("prompt")


if __name__ == "__main__":
    unittest.main()
