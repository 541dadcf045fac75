"""Pytest configuration and fixtures."""

import asyncio
import os
from typing import Any, Optional

import pytest
from dotenv import load_dotenv

from glossary_merge import config as config_module
from glossary_merge.config import AppConfig, LLMConfig, MergeConfig
from glossary_merge.glossary.models import GlossaryDictionary

# Load .env at import time for pytest
load_dotenv()


def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "integration: mark test as integration test")


class FakeArbiter:
    """Arbitration client controlled by the test.

    With ``responses`` each request pops the next item (raising it if it is
    an exception). Without, each request waits on a future the test resolves
    through ``futures``.
    """

    def __init__(self, responses: Optional[list[Any]] = None):
        self.prompts: list[Any] = []
        self.futures: list[asyncio.Future] = []
        self._responses = list(responses) if responses is not None else None
        self.active = 0
        self.max_active = 0

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def request(self, prompt: Any) -> str:
        self.prompts.append(prompt)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            if self._responses is not None:
                item = self._responses.pop(0)
                await asyncio.sleep(0)
                if isinstance(item, Exception):
                    raise item
                return item
            future = asyncio.get_running_loop().create_future()
            self.futures.append(future)
            return await future
        finally:
            self.active -= 1


class RecordingPromptBuilder:
    """Prompt builder that returns its inputs so tests can inspect them."""

    def __init__(self):
        self.calls: list[tuple[dict, dict]] = []

    def build(self, existing: dict, new_updates: dict) -> dict:
        self.calls.append((existing, new_updates))
        return {"existing": existing, "new_updates": new_updates}


async def settle(rounds: int = 20) -> None:
    """Let scheduled tasks run until they block."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def prompt_builder() -> RecordingPromptBuilder:
    return RecordingPromptBuilder()


@pytest.fixture
def sample_dictionary() -> GlossaryDictionary:
    """Two unrelated entries with non-contiguous ids."""
    return GlossaryDictionary.model_validate(
        {
            "entries": [
                {"id": 1, "keys": ["東雲", "しののめ"], "value": "[character] Shinonome (東雲)"},
                {"id": 4, "keys": ["氷姫"], "value": "[character] Ice Princess (氷姫)"},
            ]
        }
    )


@pytest.fixture
def app_config(monkeypatch) -> AppConfig:
    """Install a deterministic global config for the test."""
    cfg = AppConfig(
        llm=LLMConfig(api_key="sk-test-key-123", model="test-model"),
        merge=MergeConfig(source_lang="ja", target_lang="en", max_retries=2, temperature=0.1),
    )
    monkeypatch.setattr(config_module, "_config", cfg)
    return cfg


@pytest.fixture(scope="session")
def openai_api_available():
    """Check if OpenAI API is available for testing."""
    api_key = os.getenv("OPENAI_API_KEY", "")
    return bool(api_key) and not api_key.startswith("sk-your")
