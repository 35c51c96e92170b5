"""
External summarization backends for LinkPost.

Both backends are single-shot: a failure raises SummarizerError and the
caller falls back to templated text.
"""
import asyncio
import logging
from typing import Optional

import aiohttp
import async_timeout
import openai

from linkpost.config import Settings

logger = logging.getLogger(__name__)


class SummarizerError(Exception):
    """The external summarizer did not return usable text."""


class HuggingFaceSummarizer:
    """
    Calls a Hugging Face inference summarization model.
    """
    name = "huggingface"

    def __init__(self, settings: Settings):
        self.url = f"{settings.summarizer_endpoint}/{settings.summarizer_model}"
        self.token = settings.summarizer_token
        self.timeout = settings.summarizer_timeout
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            self._session = aiohttp.ClientSession(headers={
                'Authorization': f'Bearer {self.token}',
                'Content-Type': 'application/json',
            })
        return self._session

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def summarize(self, prompt: str) -> str:
        """
        Summarize ``prompt``.

        Raises:
            SummarizerError: On timeout, HTTP error or an unexpected response
        """
        payload = {
            'inputs': prompt,
            'parameters': {
                'max_length': 350,
                'min_length': 100,
                'do_sample': True,
                'temperature': 0.7,
                'top_p': 0.9,
                'repetition_penalty': 1.2,
            },
        }
        try:
            async with async_timeout.timeout(self.timeout):
                async with self.session.post(self.url, json=payload) as response:
                    if response.status >= 300:
                        raise SummarizerError(f"HTTP {response.status}")
                    data = await response.json(content_type=None)
        except asyncio.TimeoutError as e:
            raise SummarizerError(f"timed out after {self.timeout}s") from e
        except (aiohttp.ClientError, ValueError) as e:
            raise SummarizerError(str(e) or type(e).__name__) from e

        if isinstance(data, list) and data and isinstance(data[0], dict):
            text = data[0].get('summary_text')
            if isinstance(text, str) and text.strip():
                return text
        raise SummarizerError("response has no summary_text")


class OpenAISummarizer:
    """
    Uses an OpenAI chat model to write the post body.
    """
    name = "openai"

    def __init__(self, settings: Settings):
        self.model = settings.openai_model
        self.temperature = settings.temperature
        self.timeout = settings.summarizer_timeout
        self.client = openai.AsyncOpenAI(
            api_key=settings.openai_api_key,
            timeout=settings.summarizer_timeout,
            max_retries=0,
        )

    async def close(self):
        await self.client.close()

    async def summarize(self, prompt: str) -> str:
        """
        Ask the chat model for a post body.

        Raises:
            SummarizerError: On API errors, timeouts or an empty answer
        """
        try:
            async with async_timeout.timeout(self.timeout):
                response = await self.client.chat.completions.create(
                    model=self.model,
                    temperature=self.temperature,
                    messages=[{'role': 'user', 'content': prompt}],
                )
        except asyncio.TimeoutError as e:
            raise SummarizerError(f"timed out after {self.timeout}s") from e
        except openai.OpenAIError as e:
            raise SummarizerError(str(e)) from e

        if not response.choices:
            raise SummarizerError("response has no choices")
        text = response.choices[0].message.content
        if not text or not text.strip():
            raise SummarizerError("empty completion")
        return text


def build_summarizer(settings: Settings) -> Optional[object]:
    """
    Create the configured summarizer.

    Returns:
        A summarizer, or None when no credential is configured
    """
    if not settings.summarizer_enabled:
        return None
    if settings.summarizer_provider == "openai":
        return OpenAISummarizer(settings)
    return HuggingFaceSummarizer(settings)
