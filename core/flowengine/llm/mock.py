"""Deterministic LLM provider for tests and dry runs."""

from flowengine.llm.provider import LLMProvider, LLMResponse


class MockLLMProvider(LLMProvider):
    """
    Returns canned completions and records every call.

    Args:
        responses: Completions returned in order; the last one repeats
        error: Raise this exception instead of answering
    """

    def __init__(
        self,
        responses: list[str] | None = None,
        model: str = "mock-model",
        error: Exception | None = None,
    ):
        self.responses = list(responses or ["mock completion"])
        self.model = model
        self.error = error
        self.calls: list[dict] = []

    async def complete(
        self,
        system: str,
        user_input: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        self.calls.append(
            {
                "system": system,
                "user_input": user_input,
                "model": model,
                "temperature": temperature,
                "max_tokens": max_tokens,
            }
        )
        if self.error is not None:
            raise self.error
        index = min(len(self.calls) - 1, len(self.responses) - 1)
        return LLMResponse(content=self.responses[index], model=model or self.model)
