"""Arbitration transport: sends conflict prompts to an OpenAI-compatible endpoint.

The merge scheduler treats any exception raised here as a failed
arbitration (a no-op for that proposal), so retrying transient endpoint
errors is this module's job.
"""

import asyncio
from typing import Literal, Optional

import structlog

from glossary_merge.config import LLMConfig, get_config, get_effective_llm_config, mask_api_key
from glossary_merge.glossary.prompts import ArbitrationPrompt

logger = structlog.get_logger()

TaskType = Literal["glossary_update", "default"]


def backoff_delay(attempt: int) -> int:
    """Seconds to wait after failed attempt ``attempt`` (0-based): 1, 2, 4, ..."""
    return 2**attempt


class LLMClient:
    """Arbiter backed by a chat-completions model."""

    def __init__(
        self,
        config: Optional[LLMConfig] = None,
        task: Optional[TaskType] = None,
        max_retries: Optional[int] = None,
        temperature: Optional[float] = None,
    ):
        """Initialize the arbiter client.

        Args:
            config: Endpoint settings; resolved from ``task`` if None
            task: ``glossary_update`` uses GLOSSARY_UPDATE_LLM_* with OPENAI_*
                  fallback, ``default`` uses OPENAI_* only
            max_retries: Retries per arbitration request (MERGE_MAX_RETRIES if None)
            temperature: Arbitration temperature (MERGE_TEMPERATURE if None)
        """
        self.config = config or self._get_config_for_task(task or "default")
        merge_config = get_config().merge
        self.max_retries = merge_config.max_retries if max_retries is None else max_retries
        self.temperature = merge_config.temperature if temperature is None else temperature
        self._client = None

    def _get_config_for_task(self, task: TaskType) -> LLMConfig:
        app_config = get_config()
        if task == "glossary_update":
            return get_effective_llm_config(
                app_config.glossary_update_llm, app_config.llm, "GlossaryUpdate"
            )
        logger.debug(
            "arbiter_config_default",
            model=app_config.llm.model,
            api_key=mask_api_key(app_config.llm.api_key),
            base_url=app_config.llm.base_url,
        )
        return app_config.llm

    @property
    def client(self):
        """AsyncOpenAI client, created on first request."""
        if self._client is None:
            import openai

            self._client = openai.AsyncOpenAI(
                api_key=self.config.api_key,
                base_url=self.config.base_url,
            )
        return self._client

    async def complete(
        self,
        system_prompt: str,
        user_prompt: str,
        max_retries: int = 3,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> str:
        """Run one chat completion, retrying failed attempts with backoff.

        Args:
            system_prompt: Arbitration rules and action grammar
            user_prompt: Conflicting entries and the new proposal
            max_retries: Extra attempts after the first failure
            temperature: Sampling temperature (endpoint config if None)
            max_tokens: Completion limit (endpoint config if None)

        Returns:
            Raw completion text, stripped; the caller decodes the JSON actions

        Raises:
            Exception: The last endpoint error once retries are exhausted
        """
        messages = [
            {"role": "system", "content": system_prompt},
            {"role": "user", "content": user_prompt},
        ]
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            try:
                response = await self.client.chat.completions.create(
                    model=self.config.model,
                    messages=messages,
                    temperature=self.config.temperature if temperature is None else temperature,
                    max_tokens=max_tokens or self.config.max_tokens,
                )
            except Exception as e:
                last_error = e
                if attempt == max_retries:
                    break
                logger.warning(
                    "arbitration_request_retry",
                    model=self.config.model,
                    attempt=attempt + 1,
                    max_retries=max_retries,
                    error=str(e),
                )
                await asyncio.sleep(backoff_delay(attempt))
                continue
            return (response.choices[0].message.content or "").strip()

        raise last_error or RuntimeError("Arbitration request failed")

    async def request(self, prompt: ArbitrationPrompt) -> str:
        """Send one arbitration prompt and return the raw completion."""
        return await self.complete(
            system_prompt=prompt.system,
            user_prompt=prompt.user,
            max_retries=self.max_retries,
            temperature=self.temperature,
        )


async def test_llm_connection(
    config: Optional[LLMConfig] = None,
    task: Optional[TaskType] = None,
) -> bool:
    """Check that the arbiter endpoint answers.

    Asks for a trivial ``none`` action with a single retry.

    Returns:
        True if the endpoint returned any text
    """
    try:
        client = LLMClient(config=config, task=task)
        response = await client.complete(
            system_prompt="You arbitrate glossary merges and answer with JSON actions only.",
            user_prompt='Reply with the JSON object {"action": "none"}.',
            max_retries=1,
            max_tokens=20,
        )
        return len(response) > 0
    except Exception as e:
        logger.error("arbiter_connection_failed", error=str(e))
        return False
