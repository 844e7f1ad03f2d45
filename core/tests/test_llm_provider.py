"""Tests for the LiteLLM-backed provider."""

from types import SimpleNamespace
from unittest.mock import AsyncMock, patch

import pytest

from flowengine.llm import LiteLLMProvider, MockLLMProvider


def _completion(content="Total: 42 EUR", model="anthropic/claude-test"):
    return SimpleNamespace(
        choices=[SimpleNamespace(message=SimpleNamespace(content=content), finish_reason="stop")],
        model=model,
        usage=SimpleNamespace(prompt_tokens=12, completion_tokens=5),
    )


@pytest.mark.asyncio
async def test_complete_builds_system_and_user_messages():
    provider = LiteLLMProvider(model="anthropic/claude-test", api_key="sk-test")

    with patch(
        "flowengine.llm.litellm.litellm.acompletion", new=AsyncMock(return_value=_completion())
    ) as acompletion:
        response = await provider.complete(
            system="Extract the total", user_input="Invoice ... 42 EUR", temperature=0.1
        )

    kwargs = acompletion.call_args.kwargs
    assert kwargs["messages"] == [
        {"role": "system", "content": "Extract the total"},
        {"role": "user", "content": "Invoice ... 42 EUR"},
    ]
    assert kwargs["model"] == "anthropic/claude-test"
    assert kwargs["api_key"] == "sk-test"
    assert kwargs["temperature"] == 0.1
    assert kwargs["max_tokens"] == 1024
    assert response.content == "Total: 42 EUR"
    assert response.input_tokens == 12
    assert response.output_tokens == 5
    assert response.stop_reason == "stop"


@pytest.mark.asyncio
async def test_model_override_and_no_key():
    provider = LiteLLMProvider(model="anthropic/claude-test")

    with patch(
        "flowengine.llm.litellm.litellm.acompletion",
        new=AsyncMock(return_value=_completion(content=None, model="")),
    ) as acompletion:
        response = await provider.complete(
            system="s", user_input="", model="openai/gpt-4o-mini", max_tokens=10
        )

    kwargs = acompletion.call_args.kwargs
    assert "api_key" not in kwargs
    assert "temperature" not in kwargs
    assert kwargs["max_tokens"] == 10
    assert response.content == ""
    assert response.model == "openai/gpt-4o-mini"


@pytest.mark.asyncio
async def test_errors_propagate():
    provider = LiteLLMProvider()

    with patch(
        "flowengine.llm.litellm.litellm.acompletion",
        new=AsyncMock(side_effect=RuntimeError("overloaded")),
    ):
        with pytest.raises(RuntimeError, match="overloaded"):
            await provider.complete(system="s", user_input="u")


@pytest.mark.asyncio
async def test_mock_provider_cycles_responses():
    provider = MockLLMProvider(responses=["first", "second"])

    answers = [(await provider.complete("s", f"u{i}")).content for i in range(3)]

    assert answers == ["first", "second", "second"]
    assert [call["user_input"] for call in provider.calls] == ["u0", "u1", "u2"]
