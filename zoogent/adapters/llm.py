"""
LLM client adapters.

Provides a unified interface for LLM providers (Anthropic Claude, OpenAI GPT).

Clients make exactly one request per generate() call. SDK retries default
to LLM_MAX_RETRIES (0): the pipeline decides which agents are worth
retrying, and a transport that retries behind its back would blow the
per-call timeout budget.
"""

from abc import ABC, abstractmethod
from typing import Any, NoReturn, Protocol

from zoogent.config import (
    ANTHROPIC_API_KEY,
    ANTHROPIC_MODEL,
    LLM_MAX_RETRIES,
    LLM_MAX_TOKENS,
    LLM_PROVIDER,
    LLM_TEMPERATURE,
    LLM_TIMEOUT,
    OPENAI_API_KEY,
    OPENAI_MODEL,
    PROVIDER_ANTHROPIC,
    PROVIDER_OPENAI,
    get_logger,
)
from zoogent.utils import require_import

logger = get_logger(__name__)


# ---------------------------------------------------------------------------
# Protocol
# ---------------------------------------------------------------------------


class LLMClient(Protocol):
    """
    Protocol for LLM clients (Anthropic or OpenAI).

    The invoker only needs generate(); anything with this signature can
    stand in for a hosted model, including test doubles.
    """

    def generate(self, system: str, user: str) -> tuple[str, int]:
        """
        Generate a response from the LLM.

        Args:
            system: Agent instruction for the role being invoked.
            user: Per-turn content (request, context, JSON payloads).

        Returns:
            Tuple of (generated_text, tokens_used).
        """
        ...


# ---------------------------------------------------------------------------
# Base class with shared logic
# ---------------------------------------------------------------------------


class LLMClientBase(ABC):
    """Base class with shared initialization and error handling."""

    client: Any
    model: str
    temperature: float
    max_tokens: int
    _sdk: Any
    _name: str
    _api_errors: tuple[type[Exception], ...]

    def _init_common(
        self,
        model: str,
        temperature: float,
        max_tokens: int,
        sdk: Any,
        name: str,
    ) -> None:
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._sdk = sdk
        self._name = name
        # APIError is the SDK-wide base; status errors land in RuntimeError
        self._api_errors = (sdk.APIError,)

    def _translate_error(self, exc: Exception) -> NoReturn:
        """Translate SDK-specific API errors to built-in exceptions."""
        if isinstance(exc, self._sdk.APITimeoutError):
            raise TimeoutError(f"{self._name} API request timed out: {exc}") from exc
        if isinstance(exc, self._sdk.RateLimitError):
            raise RuntimeError(f"{self._name} API rate limited: {exc}") from exc
        if isinstance(exc, self._sdk.APIConnectionError):
            raise ConnectionError(
                f"Failed to connect to {self._name} API: {exc}"
            ) from exc
        raise RuntimeError(f"{self._name} API error: {exc}") from exc

    @property
    def name(self) -> str:
        return self._name

    @abstractmethod
    def generate(self, system: str, user: str) -> tuple[str, int]:
        """Generate a response from the LLM."""
        ...


# ---------------------------------------------------------------------------
# Anthropic Client
# ---------------------------------------------------------------------------


class AnthropicClient(LLMClientBase):
    """Anthropic Claude client implementing the LLMClient protocol."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = ANTHROPIC_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT,
        max_retries: int = LLM_MAX_RETRIES,
    ):
        """
        Initialize Anthropic client.

        Args:
            api_key: Anthropic API key. Defaults to ANTHROPIC_API_KEY from config.
            model: Model ID to use. Defaults to ANTHROPIC_MODEL from config.
            temperature: Sampling temperature. Defaults to LLM_TEMPERATURE.
            max_tokens: Maximum tokens to generate. Defaults to LLM_MAX_TOKENS.
            timeout: Socket timeout in seconds. Defaults to LLM_TIMEOUT.
            max_retries: SDK retry attempts. Defaults to LLM_MAX_RETRIES.

        Raises:
            ImportError: If anthropic package is not installed.
        """
        anthropic = require_import("anthropic")

        self.client = anthropic.Anthropic(
            api_key=api_key or ANTHROPIC_API_KEY,
            timeout=timeout,
            max_retries=max_retries,
        )
        self._init_common(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            sdk=anthropic,
            name="Anthropic",
        )

    def generate(self, system: str, user: str) -> tuple[str, int]:
        """
        Run one agent call against Claude.

        Returns:
            Tuple of (generated_text, tokens_used).

        Raises:
            TimeoutError: If API request times out.
            RuntimeError: If rate limited or the API rejects the request.
            ConnectionError: If connection fails.
        """
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                system=system,
                messages=[{"role": "user", "content": user}],
            )
        except self._api_errors as exc:
            self._translate_error(exc)

        # Agents answer in a single text block; concatenate defensively
        text = "".join(
            block.text for block in response.content if hasattr(block, "text")
        )
        tokens = response.usage.input_tokens + response.usage.output_tokens
        return text, tokens


# ---------------------------------------------------------------------------
# OpenAI Client
# ---------------------------------------------------------------------------


class OpenAIClient(LLMClientBase):
    """OpenAI chat completions client implementing the LLMClient protocol."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = OPENAI_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT,
        max_retries: int = LLM_MAX_RETRIES,
    ):
        """
        Initialize OpenAI client.

        Args:
            api_key: OpenAI API key. Defaults to OPENAI_API_KEY from config.
            model: Model ID to use. Defaults to OPENAI_MODEL from config.
            temperature: Sampling temperature. Defaults to LLM_TEMPERATURE.
            max_tokens: Maximum tokens to generate. Defaults to LLM_MAX_TOKENS.
            timeout: Socket timeout in seconds. Defaults to LLM_TIMEOUT.
            max_retries: SDK retry attempts. Defaults to LLM_MAX_RETRIES.

        Raises:
            ImportError: If openai package is not installed.
        """
        openai = require_import("openai")

        self.client = openai.OpenAI(
            api_key=api_key or OPENAI_API_KEY,
            timeout=timeout,
            max_retries=max_retries,
        )
        self._init_common(
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            sdk=openai,
            name="OpenAI",
        )

    def generate(self, system: str, user: str) -> tuple[str, int]:
        """
        Run one agent call against GPT.

        Returns:
            Tuple of (generated_text, tokens_used).

        Raises:
            TimeoutError: If API request times out.
            RuntimeError: If rate limited or the API rejects the request.
            ConnectionError: If connection fails.
        """
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        except self._api_errors as exc:
            self._translate_error(exc)

        text = response.choices[0].message.content or ""
        tokens = response.usage.total_tokens if response.usage else 0
        return text, tokens


# ---------------------------------------------------------------------------
# Factory Function
# ---------------------------------------------------------------------------


def get_llm_client(provider: str | None = None) -> LLMClient:
    """
    Get the configured LLM client.

    Args:
        provider: LLM provider (PROVIDER_ANTHROPIC or PROVIDER_OPENAI).
            Defaults to LLM_PROVIDER from config.

    Returns:
        Configured LLM client instance.

    Raises:
        ValueError: If provider is not recognized.
    """
    provider = provider.lower().strip() if provider else LLM_PROVIDER

    if provider == PROVIDER_ANTHROPIC:
        client = AnthropicClient()
    elif provider == PROVIDER_OPENAI:
        client = OpenAIClient()
    else:
        raise ValueError(
            f"Unknown LLM provider: {provider}. "
            f"Use '{PROVIDER_ANTHROPIC}' or '{PROVIDER_OPENAI}'."
        )
    logger.info("LLM client ready", extra={"provider": provider, "model": client.model})
    return client


__all__ = [
    "LLMClient",
    "LLMClientBase",
    "AnthropicClient",
    "OpenAIClient",
    "get_llm_client",
]
