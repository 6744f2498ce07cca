"""
Generation Engines
-------------------
One capability, three implementations with an identical complete() interface:

  OpenAIChatEngine     -- OpenAI chat completions (gpt-4o-mini, gpt-4o)
  AnthropicChatEngine  -- Anthropic messages API (claude-haiku, claude-sonnet)
  UnavailableEngine    -- stub that always fails with "not supported"

The variant is chosen ONCE at startup by probe_engine() (provider configured,
SDK importable, API key present) and verified by EngineBootstrap, which
reports its progress as an async stream of InitProgress events.  The choice
is binary for the rest of the session.
"""
from __future__ import annotations

import importlib.util
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import AsyncIterator, Optional

from langsmith import traceable
from loguru import logger
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential

from localrag.config import GenerationConfig
from localrag.errors import EngineUnavailableError
from localrag.generation.prompts import STATUS_FALLBACK, STATUS_INIT, STATUS_READY

# {"role": "system" | "user", "content": "..."}
Message = dict[str, str]

# Backoff between attempts on transient SDK errors
RETRY_WAIT = wait_exponential(multiplier=1, min=2, max=30)


def _retrying(
    max_retries: int,
    transient: tuple[type[BaseException], ...],
    wait=RETRY_WAIT,
) -> AsyncRetrying:
    """Retry connection, rate-limit and 5xx errors only; everything else surfaces at once."""
    return AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait,
        retry=retry_if_exception_type(transient),
        reraise=True,
    )


_PROVIDERS: dict[str, tuple[str, str]] = {
    # provider -> (SDK module, API key env var)
    "openai":    ("openai",    "OPENAI_API_KEY"),
    "anthropic": ("anthropic", "ANTHROPIC_API_KEY"),
}


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------

class GenerationEngine(ABC):
    """A chat-completion service: role-tagged messages in, text out."""

    name: str = "engine"
    model: str = ""
    available: bool = True

    @abstractmethod
    async def complete(self, messages: list[Message]) -> str:
        """Return generated text, or raise on failure."""

    async def warmup(self) -> None:
        """Optional startup check.  Raising here downgrades the session."""


class UnavailableEngine(GenerationEngine):
    """Stand-in used when no engine can run in this environment."""

    name = "unavailable"
    available = False

    def __init__(self, reason: str = "no generation engine") -> None:
        self.reason = reason

    async def complete(self, messages: list[Message]) -> str:
        raise EngineUnavailableError(f"Generation is not supported: {self.reason}")


# ---------------------------------------------------------------------------
# OpenAI
# ---------------------------------------------------------------------------

class OpenAIChatEngine(GenerationEngine):
    """Chat completions against OpenAI models."""

    name = "openai"

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        max_tokens: int = 1024,
        temperature: float = 0.1,
        max_retries: int = 3,
        client=None,
    ) -> None:
        from openai import APIConnectionError, AsyncOpenAI, InternalServerError, RateLimitError  # lazy import
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_wait = RETRY_WAIT
        self._transient = (APIConnectionError, RateLimitError, InternalServerError)
        self._client = client if client is not None else AsyncOpenAI()

    async def warmup(self) -> None:
        await self._client.models.retrieve(self.model)

    @traceable(name="complete_openai", run_type="llm")
    async def complete(self, messages: list[Message]) -> str:
        logger.debug(f"[OpenAIChatEngine] {self.model} | {len(messages)} messages")

        async for attempt in _retrying(self.max_retries, self._transient, self.retry_wait):
            with attempt:
                response = await self._client.chat.completions.create(
                    model=self.model,
                    messages=messages,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                )

        answer = response.choices[0].message.content or ""
        usage = response.usage
        if usage is not None:
            logger.info(
                f"[OpenAIChatEngine] Done | prompt={usage.prompt_tokens} "
                f"completion={usage.completion_tokens}"
            )
        return answer


# ---------------------------------------------------------------------------
# Anthropic
# ---------------------------------------------------------------------------

class AnthropicChatEngine(GenerationEngine):
    """
    Chat completions against Anthropic Claude models.

    The Anthropic SDK takes the system prompt as a separate `system`
    parameter (not inside the messages list) - handled here transparently.
    """

    name = "anthropic"

    def __init__(
        self,
        model: str = "claude-haiku-4-5-20251001",
        max_tokens: int = 1024,
        temperature: float = 0.1,
        max_retries: int = 3,
        client=None,
    ) -> None:
        from anthropic import APIConnectionError, AsyncAnthropic, InternalServerError, RateLimitError  # lazy import
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.max_retries = max_retries
        self.retry_wait = RETRY_WAIT
        self._transient = (APIConnectionError, RateLimitError, InternalServerError)
        self._client = client if client is not None else AsyncAnthropic()

    async def warmup(self) -> None:
        await self._client.models.retrieve(self.model)

    @traceable(name="complete_anthropic", run_type="llm")
    async def complete(self, messages: list[Message]) -> str:
        system = "\n\n".join(m["content"] for m in messages if m["role"] == "system")
        turns = [m for m in messages if m["role"] != "system"]

        logger.debug(f"[AnthropicChatEngine] {self.model} | {len(turns)} turns")

        async for attempt in _retrying(self.max_retries, self._transient, self.retry_wait):
            with attempt:
                response = await self._client.messages.create(
                    model=self.model,
                    max_tokens=self.max_tokens,
                    temperature=self.temperature,
                    system=system,
                    messages=turns,
                )

        answer = "".join(
            block.text for block in response.content if getattr(block, "type", "text") == "text"
        )
        logger.info(
            f"[AnthropicChatEngine] Done | input={response.usage.input_tokens} "
            f"output={response.usage.output_tokens}"
        )
        return answer


_ENGINE_CLASSES: dict[str, type[GenerationEngine]] = {
    "openai": OpenAIChatEngine,
    "anthropic": AnthropicChatEngine,
}


# ---------------------------------------------------------------------------
# Capability probe
# ---------------------------------------------------------------------------

def probe_engine(config: GenerationConfig) -> GenerationEngine:
    """
    Detect whether the configured provider can run here and build it.

    Never raises: every missing capability yields an UnavailableEngine
    carrying the reason.
    """
    if config.provider == "none":
        return UnavailableEngine("generation disabled in config")

    module, key_var = _PROVIDERS[config.provider]
    if importlib.util.find_spec(module) is None:
        return UnavailableEngine(f"{module} SDK is not installed")
    if not os.getenv(key_var):
        return UnavailableEngine(f"{key_var} is not set")

    try:
        return _ENGINE_CLASSES[config.provider](
            model=config.model,
            max_tokens=config.max_tokens,
            temperature=config.temperature,
            max_retries=config.max_retries,
        )
    except Exception as exc:
        logger.warning(f"[Engine] {config.provider} client init failed: {exc}")
        return UnavailableEngine(str(exc))


# ---------------------------------------------------------------------------
# Bootstrap with progress events
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InitProgress:
    """One step of engine initialisation."""

    stage: str          # "probe" | "warmup" | "ready" | "fallback"
    progress: float     # 0.0 .. 1.0
    message: str


class EngineBootstrap:
    """
    Probes and warms up the generation engine once per session.

    Consume events() to follow progress; afterwards `engine` holds either
    a working engine or an UnavailableEngine, and `status_label` describes
    the resulting mode.

    Usage:
        boot = EngineBootstrap(config.generation)
        async for event in boot.events():
            print(event.message)
        engine = boot.engine
    """

    def __init__(self, config: GenerationConfig, verify: bool = True) -> None:
        self.config = config
        self.verify = verify
        self.engine: Optional[GenerationEngine] = None

    @property
    def status_label(self) -> str:
        if self.engine is None:
            return STATUS_INIT
        if isinstance(self.engine, UnavailableEngine):
            return STATUS_FALLBACK.format(reason=self.engine.reason)
        return STATUS_READY.format(provider=self.engine.name, model=self.engine.model)

    async def events(self) -> AsyncIterator[InitProgress]:
        if self.engine is not None:
            raise RuntimeError("EngineBootstrap already ran; the engine is fixed for the session")

        yield InitProgress("probe", 0.0, f"Probing {self.config.provider} engine...")
        engine = probe_engine(self.config)

        if isinstance(engine, UnavailableEngine):
            logger.warning(f"[Engine] Unavailable: {engine.reason}. Running in retrieval-only mode.")
            self.engine = engine
            yield InitProgress("fallback", 1.0, self.status_label)
            return

        if self.verify:
            yield InitProgress("warmup", 0.5, f"Checking model {engine.model}...")
            try:
                await engine.warmup()
            except Exception as exc:
                logger.warning(f"[Engine] Warmup failed: {exc}. Running in retrieval-only mode.")
                self.engine = UnavailableEngine(str(exc) or type(exc).__name__)
                yield InitProgress("fallback", 1.0, self.status_label)
                return

        self.engine = engine
        logger.info(f"[Engine] Ready | provider={engine.name} model={engine.model}")
        yield InitProgress("ready", 1.0, self.status_label)

    async def run(self) -> GenerationEngine:
        """Drain events() and return the selected engine."""
        async for event in self.events():
            logger.debug(f"[Engine] init {event.stage} {event.progress:.0%} - {event.message}")
        if self.engine is None:
            raise RuntimeError("EngineBootstrap finished without selecting an engine")
        return self.engine
