"""LiteLLM-backed provider: one interface for Anthropic, OpenAI, Gemini and others."""

import logging

import litellm

from flowengine.config import DEFAULT_LLM_MODEL
from flowengine.llm.provider import LLMProvider, LLMResponse

logger = logging.getLogger(__name__)


class LiteLLMProvider(LLMProvider):
    """
    LLM provider calling ``litellm.acompletion``.

    Models use LiteLLM's ``provider/model`` naming, e.g.
    ``anthropic/claude-haiku-4-5-20251001`` or ``openai/gpt-4o-mini``. When
    ``api_key`` is omitted LiteLLM reads the provider's usual environment
    variable.
    """

    def __init__(
        self,
        model: str = DEFAULT_LLM_MODEL,
        api_key: str | None = None,
        api_base: str | None = None,
        default_max_tokens: int = 1024,
    ):
        self.model = model
        self.api_key = api_key
        self.api_base = api_base
        self.default_max_tokens = default_max_tokens

    async def complete(
        self,
        system: str,
        user_input: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        messages = [{"role": "system", "content": system}]
        messages.append({"role": "user", "content": user_input or ""})

        kwargs = {
            "model": model or self.model,
            "messages": messages,
            "max_tokens": max_tokens or self.default_max_tokens,
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.api_base:
            kwargs["api_base"] = self.api_base

        logger.debug(f"LiteLLM completion with {kwargs['model']}")
        response = await litellm.acompletion(**kwargs)

        choice = response.choices[0]
        usage = getattr(response, "usage", None)
        return LLMResponse(
            content=choice.message.content or "",
            model=getattr(response, "model", None) or kwargs["model"],
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
            stop_reason=choice.finish_reason or "",
            raw_response=response,
        )
