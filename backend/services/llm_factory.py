"""
LLM factory — resolves a logical role to a text-generation capability.

Two roles exist: the manager (fast/cheap model at low temperature, used for
query rewriting, classification and critique) and the worker (stronger
creative model at higher temperature, used for drafting and refinement).
Provider and model per role come from the environment (see config.py).

A LangChain chat model is instantiated per call, so per-call temperature and
max_tokens never leak between nodes.
"""

import asyncio
import logging
from functools import partial
from typing import Any, Callable, Optional

from langchain_anthropic import ChatAnthropic
from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI

from config import Settings, get_settings
from services.errors import (
    ConfigurationError,
    InvalidResponseError,
    ProviderError,
    ProviderTimeoutError,
    map_provider_error,
)
from services.retry import RetryConfig, retry_with_backoff

logger = logging.getLogger(__name__)

ROLES = ("manager", "worker")

DEFAULT_MAX_TOKENS = 1024

ChatModelFactory = Callable[..., Any]


# ---------------------------------------------------------------------------
# Provider map: provider id -> chat model constructor
# ---------------------------------------------------------------------------

def _anthropic(settings: Settings) -> ChatModelFactory:
    def build(model: str, temperature: float, max_tokens: int) -> Any:
        return ChatAnthropic(
            model=model,
            api_key=settings.anthropic_api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=0,  # retries are ours
        )

    return build


def _openai(settings: Settings) -> ChatModelFactory:
    def build(model: str, temperature: float, max_tokens: int) -> Any:
        return ChatOpenAI(
            model=model,
            api_key=settings.openai_api_key,
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=0,
        )

    return build


def _ollama(settings: Settings) -> ChatModelFactory:
    # Ollama speaks the OpenAI API under /v1
    def build(model: str, temperature: float, max_tokens: int) -> Any:
        return ChatOpenAI(
            model=model,
            base_url=f"{settings.ollama_base_url.rstrip('/')}/v1",
            api_key="ollama",
            temperature=temperature,
            max_tokens=max_tokens,
            max_retries=0,
        )

    return build


_PROVIDER_MAP = {
    "anthropic": _anthropic,
    "openai": _openai,
    "ollama": _ollama,
}

_DEFAULT_MODELS = {
    ("anthropic", "manager"): "claude-3-haiku-20240307",
    ("anthropic", "worker"): "claude-3-5-sonnet-20241022",
    ("openai", "manager"): "gpt-4o-mini",
    ("openai", "worker"): "gpt-4o",
}

# Hosted providers and the Settings field holding their key; Ollama needs none
_API_KEY_FIELDS = {
    "anthropic": "anthropic_api_key",
    "openai": "openai_api_key",
}


def _has_api_key(settings: Settings, provider: str) -> bool:
    field_name = _API_KEY_FIELDS.get(provider)
    return field_name is None or bool(getattr(settings, field_name))


def _resolve_keyed_provider(settings: Settings, preferred: str) -> str:
    """
    Return `preferred` if it can authenticate, else the other hosted provider.

    Raises:
        ConfigurationError: no configured provider has an API key.
    """
    if _has_api_key(settings, preferred):
        return preferred

    for candidate in _API_KEY_FIELDS:
        if candidate != preferred and _has_api_key(settings, candidate):
            logger.warning(
                f"No API key for '{preferred}', falling back to '{candidate}'"
            )
            return candidate

    raise ConfigurationError(
        "No valid AI API keys found in configuration. "
        "Set ANTHROPIC_API_KEY or OPENAI_API_KEY, or use the ollama provider."
    )


class TextGenerator:
    """Uniform text-generation capability over a LangChain chat model."""

    def __init__(
        self,
        provider_name: str,
        model_name: str,
        chat_model_factory: ChatModelFactory,
        default_temperature: float = 0.7,
        default_max_tokens: int = DEFAULT_MAX_TOKENS,
        default_timeout: Optional[float] = 30.0,
        max_retries: Optional[int] = None,
    ) -> None:
        self.provider_name = provider_name
        self.model_name = model_name
        self._chat_model_factory = chat_model_factory
        self.default_temperature = default_temperature
        self.default_max_tokens = default_max_tokens
        self.default_timeout = default_timeout
        self.max_retries = max_retries

    def get_provider_name(self) -> str:
        return self.provider_name

    async def generate_text(
        self,
        prompt: str,
        *,
        system_prompt: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        timeout: Optional[float] = None,
    ) -> str:
        """
        Run a single completion.

        Raises:
            ProviderError (or a subclass) for every failure, including an
            empty response.
        """
        timeout = timeout if timeout is not None else self.default_timeout
        messages = []
        if system_prompt:
            messages.append(SystemMessage(content=system_prompt))
        messages.append(HumanMessage(content=prompt))

        try:
            llm = self._chat_model_factory(
                model=self.model_name,
                temperature=self.default_temperature if temperature is None else temperature,
                max_tokens=max_tokens or self.default_max_tokens,
            )
            if timeout:
                response = await asyncio.wait_for(llm.ainvoke(messages), timeout)
            else:
                response = await llm.ainvoke(messages)
        except asyncio.TimeoutError:
            raise ProviderTimeoutError(self.provider_name, timeout) from None
        except ProviderError:
            raise
        except Exception as exc:  # noqa: BLE001
            mapped = map_provider_error(exc, self.provider_name)
            logger.error(f"[{self.provider_name}] generation failed ({self.model_name}): {mapped}")
            raise mapped from exc

        text = _response_text(response)
        if not text.strip():
            raise InvalidResponseError(self.provider_name, "no text content in response")
        return text

    async def generate_with_retry(
        self,
        prompt: str,
        retry_config: RetryConfig,
        **options: Any,
    ) -> str:
        """generate_text wrapped in the retry policy chosen by the call site."""
        config = retry_config.with_max_retries(self.max_retries)
        return await retry_with_backoff(
            partial(self.generate_text, prompt, **options),
            config,
        )

    async def validate_connection(self) -> bool:
        """Cheap round trip to check the key and model work."""
        try:
            await self.generate_text("Test", max_tokens=10)
            return True
        except ProviderError as exc:
            logger.error(f"[{self.provider_name}] connection validation failed: {exc}")
            return False


def _response_text(response: Any) -> str:
    content = getattr(response, "content", response)
    if isinstance(content, str):
        return content
    if isinstance(content, list):
        parts = []
        for block in content:
            if isinstance(block, str):
                parts.append(block)
            elif isinstance(block, dict) and block.get("type") == "text":
                parts.append(block.get("text", ""))
        return "".join(parts)
    return ""


def create_provider(
    role: str,
    model_name: Optional[str] = None,
    settings: Optional[Settings] = None,
) -> TextGenerator:
    """
    Build the TextGenerator for a role.

    Raises:
        ConfigurationError: unknown role or provider, or no usable API key,
            at construction time.
    """
    if role not in ROLES:
        raise ConfigurationError(f"Unknown AI role '{role}'. Supported roles: {list(ROLES)}")

    settings = settings or get_settings()
    provider = (
        settings.manager_ai_provider if role == "manager" else settings.worker_ai_provider
    ).lower()

    if provider not in _PROVIDER_MAP:
        raise ConfigurationError(
            f"Unknown AI provider '{provider}'. "
            f"Supported providers: {list(_PROVIDER_MAP.keys())}"
        )

    configured_model = settings.manager_model if role == "manager" else settings.worker_model
    resolved = _resolve_keyed_provider(settings, provider)
    if resolved != provider:
        # Model ids configured for the preferred provider mean nothing to the fallback
        provider, model_name, configured_model = resolved, None, None
    factory = _PROVIDER_MAP[provider]

    if provider == "ollama":
        default_model = settings.ollama_model
    else:
        default_model = _DEFAULT_MODELS[(provider, role)]
    model = model_name or configured_model or default_model

    generator = TextGenerator(
        provider_name=provider,
        model_name=model,
        chat_model_factory=factory(settings),
        default_temperature=(
            settings.manager_temperature if role == "manager" else settings.worker_temperature
        ),
        default_timeout=settings.ai_default_timeout,
        max_retries=settings.ai_max_retries,
    )
    logger.info(f"LLM ready → role={role} provider={provider} model={model}")
    return generator


def create_manager_provider(settings: Optional[Settings] = None) -> TextGenerator:
    return create_provider("manager", settings=settings)


def create_worker_provider(settings: Optional[Settings] = None) -> TextGenerator:
    return create_provider("worker", settings=settings)
