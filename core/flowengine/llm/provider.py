"""LLM Provider abstraction used by AI nodes."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    input_tokens: int = 0
    output_tokens: int = 0
    stop_reason: str = ""
    raw_response: Any = None


class LLMProvider(ABC):
    """
    Abstract LLM provider - plug in any LLM backend.

    AI nodes only need a single-turn completion: the node's prompt becomes
    the system message and its input the user message.
    """

    model: str = ""

    @abstractmethod
    async def complete(
        self,
        system: str,
        user_input: str,
        model: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
    ) -> LLMResponse:
        """
        Generate a completion.

        Args:
            system: System prompt
            user_input: User message
            model: Override the provider's default model
            temperature: Sampling temperature
            max_tokens: Maximum tokens to generate

        Returns:
            LLMResponse with content and metadata
        """
        pass
