"""Pytest configuration and shared fixtures."""

import asyncio
from unittest.mock import patch

import pytest

from gptcli.config import Config
from gptcli.engine import ConversationEngine
from gptcli.errors import ProviderError
from gptcli.input_modes import InputModeMachine
from gptcli.session_manager import SessionStore


class FakeGateway:
    """
    Scripted stand-in for the OpenAI gateway.

    - deltas are yielded in order
    - pause (an asyncio.Event) is awaited before the delta at index pause_at
    - fail_stream raises ProviderError after the deltas
    - title_pause is awaited before a title is returned
    """

    def __init__(self, deltas=("Hi", " there"), title="Greeting Chat"):
        self.deltas = tuple(deltas)
        self.title = title
        self.fail_stream: str | None = None
        self.fail_title: bool = False
        self.pause: asyncio.Event | None = None
        self.pause_at: int = 0
        self.title_pause: asyncio.Event | None = None
        self.stream_calls: list[tuple[str, list[dict]]] = []
        self.title_calls: list[str] = []

    async def stream_completion(self, model, messages):
        self.stream_calls.append((model, list(messages)))
        for i, delta in enumerate(self.deltas):
            if self.pause is not None and i == self.pause_at:
                await self.pause.wait()
            yield delta
            await asyncio.sleep(0)
        if self.fail_stream:
            raise ProviderError(self.fail_stream)

    async def generate_title(self, seed_text):
        self.title_calls.append(seed_text)
        if self.title_pause is not None:
            await self.title_pause.wait()
        if self.fail_title:
            raise ProviderError("title service unavailable")
        return self.title


@pytest.fixture
def config_file(tmp_path):
    """Points the config module at a temporary settings file."""
    fake_config_file = tmp_path / "settings.json"
    with patch("gptcli.config.CONFIG_FILE", str(fake_config_file)):
        yield fake_config_file


@pytest.fixture
def store(tmp_path):
    return SessionStore(str(tmp_path / "sessions"))


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_engine(config_file, store, gateway):
    """Builds an initialized engine. The file picker never finds anything."""

    def _make():
        modes = InputModeMachine(scanner=lambda query: [])
        engine = ConversationEngine(
            Config(), store, gateway, modes=modes, save_delay=0
        )
        engine.initialize()
        return engine

    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()
