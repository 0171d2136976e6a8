"""Completion provider access. Everything the rest of the client knows about OpenAI."""

import os
from collections.abc import AsyncIterator

from openai import AsyncOpenAI, OpenAIError

from gptcli.errors import ProviderError
from gptcli.globals import TITLE_MODEL, retrieve_key

TITLE_PROMPT = (
    "Generate a short, concise title (3-5 words) for a conversation that starts "
    "with this message. Respond with ONLY the title, no quotes or explanation."
)


class CompletionGateway:
    """Streams chat completions and generates session titles."""

    def __init__(self, client: AsyncOpenAI | None = None):
        self.client = client or AsyncOpenAI(
            api_key=retrieve_key(), base_url=os.getenv("OPENAI_BASE_URL") or None
        )

    async def stream_completion(
        self, model: str, messages: list[dict]
    ) -> AsyncIterator[str]:
        """Yields text deltas for one chat turn."""
        try:
            stream = await self.client.chat.completions.create(
                model=model,
                messages=messages,
                stream=True,
            )
            async for chunk in stream:
                if not chunk.choices:
                    continue
                delta = chunk.choices[0].delta.content
                if delta:
                    yield delta
        except OpenAIError as e:
            raise ProviderError(str(e)) from e

    async def generate_title(self, seed_text: str) -> str:
        """Asks a small model for a 3-5 word title."""
        try:
            response = await self.client.chat.completions.create(
                model=TITLE_MODEL,
                messages=[
                    {"role": "system", "content": TITLE_PROMPT},
                    {"role": "user", "content": seed_text},
                ],
                max_tokens=20,
            )
        except OpenAIError as e:
            raise ProviderError(str(e)) from e
        # Remove quotes if present
        title = (response.choices[0].message.content or "").strip().strip("\"'")
        return title.strip() or "Untitled"

    async def close(self):
        await self.client.close()
