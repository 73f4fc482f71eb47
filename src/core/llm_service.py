"""
LLM Service for planning and phrasing.
Wraps the configured text-generation provider behind a single
`generate(prompt, system_prompt) -> text` capability.
"""

import asyncio
import json
import re
from abc import ABC, abstractmethod
from typing import Optional

import anthropic
import openai
import structlog

from src.config import Settings, settings as default_settings
from src.core.errors import GenerationError

logger = structlog.get_logger()


class LLMProvider(ABC):
    """Abstract base class for LLM providers."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a completion. Raises GenerationError on failure."""
        pass


class OpenAIProvider(LLMProvider):
    """OpenAI LLM provider."""

    def __init__(self, api_key: str, model: str = "gpt-4o-mini"):
        self.api_key = api_key
        self.model = model
        self._client = None
        self._logger = logger.bind(provider="openai")

    def _get_client(self) -> openai.AsyncOpenAI:
        """Lazy initialization of OpenAI client."""
        if self._client is None:
            self._client = openai.AsyncOpenAI(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a completion using OpenAI."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        try:
            response = await self._get_client().chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=max_tokens,
            )
        except openai.APIStatusError as e:
            self._logger.error("openai_completion_failed", status=e.status_code, error=str(e))
            raise GenerationError(str(e), status_code=e.status_code) from e
        except openai.APIError as e:
            self._logger.error("openai_completion_failed", error=str(e))
            raise GenerationError(str(e)) from e
        return response.choices[0].message.content or ""


class AnthropicProvider(LLMProvider):
    """Anthropic Claude LLM provider."""

    def __init__(self, api_key: str, model: str = "claude-sonnet-4-20250514"):
        self.api_key = api_key
        self.model = model
        self._client = None
        self._logger = logger.bind(provider="anthropic")

    def _get_client(self) -> anthropic.AsyncAnthropic:
        """Lazy initialization of Anthropic client."""
        if self._client is None:
            self._client = anthropic.AsyncAnthropic(api_key=self.api_key)
        return self._client

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        """Generate a completion using Claude."""
        try:
            message = await self._get_client().messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system_prompt or "You are a helpful assistant.",
                messages=[{"role": "user", "content": prompt}],
                temperature=temperature,
            )
        except anthropic.APIStatusError as e:
            self._logger.error("anthropic_completion_failed", status=e.status_code, error=str(e))
            raise GenerationError(str(e), status_code=e.status_code) from e
        except anthropic.APIError as e:
            self._logger.error("anthropic_completion_failed", error=str(e))
            raise GenerationError(str(e)) from e

        # Extract text content
        text_content = ""
        for content_block in message.content:
            if content_block.type == "text":
                text_content += content_block.text
        return text_content


class RuleBasedMockProvider(LLMProvider):
    """
    Keyless provider for local runs.

    Planner prompts (they ask for the `{"action": ...}` JSON envelope) get a
    keyword-based plan; every other prompt gets a short plain-text echo of
    the instruction.
    """

    _USER_LINE_RE = re.compile(r'^USER: (".*")$', re.MULTILINE)
    _AMOUNT_RE = re.compile(r"\$?\b(\d+(?:\.\d{1,2})?)\b")
    _ORDINALS = {"first": 1, "second": 2, "third": 3}

    def __init__(self):
        self._logger = logger.bind(provider="rule_based_mock")
        self._call_count = 0

    async def complete(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 1000,
    ) -> str:
        self._call_count += 1
        self._logger.info("mock_completion", call_number=self._call_count, prompt_preview=prompt[:100])

        if '{"action"' in prompt:
            return json.dumps(self._plan(self._extract_user_text(prompt)), separators=(",", ":"))
        first_line = prompt.strip().splitlines()[0] if prompt.strip() else ""
        return first_line[:280]

    def _extract_user_text(self, prompt: str) -> str:
        match = self._USER_LINE_RE.search(prompt)
        if not match:
            return ""
        try:
            return str(json.loads(match.group(1)))
        except json.JSONDecodeError:
            return ""

    def _plan(self, text: str) -> dict:
        lowered = text.lower()
        if re.search(r"\b(donate|give|send)\b", lowered):
            params = {}
            amount = self._AMOUNT_RE.search(lowered)
            if amount:
                params["amount"] = float(amount.group(1))
            for word, position in self._ORDINALS.items():
                if re.search(rf"\b{word}\b", lowered):
                    params["useContextOrdinal"] = position
                    break
            return {"action": "donate", "params": params}
        if re.search(r"\b(suggest|recommend|not sure|ideas?)\b", lowered):
            return {"action": "suggest", "params": {"interests": text}}
        if re.search(r"\b(hi|hello|hey|what can you do|help)\b", lowered):
            return {"action": "info", "params": {}}
        if re.search(r"\b(search|find|show|looking|campaigns?)\b", lowered):
            return {"action": "search", "params": {"q": text}}
        return {"action": "chat", "params": {}}


class LLMService:
    """
    Central text generation service.

    Every call is bounded by `llm_timeout_seconds`; a timeout surfaces as a
    GenerationError like any other provider failure.
    """

    def __init__(self, provider: Optional[LLMProvider] = None, config: Optional[Settings] = None):
        self._settings = config or default_settings
        if provider:
            self._provider = provider
        else:
            self._provider = self._select_provider()
        self._logger = logger.bind(component="llm_service", provider=type(self._provider).__name__)

    def _select_provider(self) -> LLMProvider:
        """Select provider based on configuration."""
        cfg = self._settings
        llm_provider = cfg.llm_provider.lower()

        if llm_provider == "mock":
            logger.info("Using rule-based mock LLM provider")
            return RuleBasedMockProvider()
        if llm_provider == "anthropic" and cfg.anthropic_api_key:
            logger.info("Using Anthropic Claude as LLM provider")
            return AnthropicProvider(cfg.anthropic_api_key, cfg.anthropic_model)
        if llm_provider == "openai" and cfg.openai_api_key:
            logger.info("Using OpenAI as LLM provider")
            return OpenAIProvider(cfg.openai_api_key, cfg.openai_model)
        if cfg.anthropic_api_key:
            logger.info("Using Anthropic Claude as LLM provider (auto-detected)")
            return AnthropicProvider(cfg.anthropic_api_key, cfg.anthropic_model)
        if cfg.openai_api_key:
            logger.info("Using OpenAI as LLM provider (auto-detected)")
            return OpenAIProvider(cfg.openai_api_key, cfg.openai_model)
        logger.info("Using rule-based mock LLM provider (no API keys configured)")
        return RuleBasedMockProvider()

    async def generate(self, prompt: str, system_prompt: Optional[str] = None, temperature: float = 0.7) -> str:
        """Generate text for `prompt` under `system_prompt`."""
        try:
            text = await asyncio.wait_for(
                self._provider.complete(
                    prompt=prompt,
                    system_prompt=system_prompt,
                    temperature=temperature,
                    max_tokens=self._settings.llm_max_tokens,
                ),
                timeout=self._settings.llm_timeout_seconds,
            )
        except asyncio.TimeoutError as e:
            self._logger.error("llm_generation_timed_out", timeout=self._settings.llm_timeout_seconds)
            raise GenerationError("Text generation timed out") from e
        return (text or "").strip()

