"""Tests for the Anthropic and OpenAI capability providers."""

import json
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock

import pytest

from agentnet.errors import ConfigurationError, LLMError
from agentnet.llm import (
    AnthropicProvider,
    ModelCallContext,
    OpenAIProvider,
    create_provider,
)
from agentnet.models import Capability, CapabilitySchema, EntryType, RunContext
from agentnet.resilience import TimeoutPolicy
from agentnet.session import Conversation


async def get_weather(context, args):
    return {"city": args["city"], "temp": 21}


WEATHER = Capability(
    schema=CapabilitySchema(
        name="getWeather",
        description="Current weather",
        parameters={"type": "object", "properties": {"city": {"type": "string"}}},
    ),
    function=get_weather,
)


def make_context(client=None, capabilities=None):
    conversation = Conversation()
    conversation.add_user_input({"role": "user", "content": "weather in Oslo?"})
    return ModelCallContext(
        client=client,
        run=RunContext(session_id="s1", state={}, conversation=conversation),
        capabilities=capabilities if capabilities is not None else {"getWeather": WEATHER},
        timeouts=TimeoutPolicy(tool=1),
    )


def text_block(text):
    return SimpleNamespace(type="text", text=text)


def tool_use_block(block_id, name, data):
    return SimpleNamespace(type="tool_use", id=block_id, name=name, input=data)


class TestCreateProvider:
    """Tests for create_provider()."""

    def test_known_kinds(self):
        assert isinstance(create_provider("anthropic", api_key="k"), AnthropicProvider)
        assert isinstance(create_provider("openai", api_key="k"), OpenAIProvider)

    def test_unknown_kind(self):
        with pytest.raises(ConfigurationError):
            create_provider("llama")


class TestAnthropicProvider:
    """Tests for AnthropicProvider."""

    def test_get_client_requires_key(self, monkeypatch):
        monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            AnthropicProvider().get_client()

    @pytest.mark.asyncio
    async def test_call_model_params(self):
        client = Mock()
        client.messages.create = AsyncMock(return_value="response")
        provider = AnthropicProvider(api_key="k", system="Be brief")
        context = make_context(client)

        result = await provider.call_model(client, {"temperature": 0}, context)

        assert result == "response"
        kwargs = client.messages.create.await_args.kwargs
        assert kwargs["system"] == "Be brief"
        assert kwargs["temperature"] == 0
        assert kwargs["max_tokens"] == 1024
        assert kwargs["tools"][0]["input_schema"] == WEATHER.schema.parameters
        assert kwargs["messages"] == [{"role": "user", "content": "weather in Oslo?"}]

    @pytest.mark.asyncio
    async def test_call_model_without_tools(self):
        client = Mock()
        client.messages.create = AsyncMock(return_value="response")
        context = make_context(client, capabilities={})

        await AnthropicProvider(api_key="k").call_model(client, {}, context)

        kwargs = client.messages.create.await_args.kwargs
        assert "tools" not in kwargs
        assert "system" not in kwargs

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        client = Mock()
        client.messages.create = AsyncMock(side_effect=RuntimeError("overloaded"))

        with pytest.raises(LLMError) as exc_info:
            await AnthropicProvider(api_key="k").call_model(client, {}, make_context(client))
        assert exc_info.value.provider == "anthropic"

    @pytest.mark.asyncio
    async def test_text_response_is_answer(self):
        context = make_context()
        response = SimpleNamespace(content=[text_block("Sunny")])

        answer = await AnthropicProvider(api_key="k").interpret_response(response, context)

        assert answer == "Sunny"
        assert context.conversation.last.type == EntryType.MODEL_RESPONSE

    @pytest.mark.asyncio
    async def test_tool_use_runs_capabilities(self):
        context = make_context()
        response = SimpleNamespace(
            content=[
                text_block("Checking"),
                tool_use_block("tu_1", "getWeather", {"city": "Oslo"}),
                tool_use_block("tu_2", "getTraffic", {}),
            ]
        )

        answer = await AnthropicProvider(api_key="k").interpret_response(response, context)

        assert answer is None
        call, result = context.conversation.entries[-2:]
        assert call.type == EntryType.FUNCTION_CALL
        assert [b["type"] for b in call.content["content"]] == ["text", "tool_use", "tool_use"]

        assert result.type == EntryType.FUNCTION_RESULT
        weather, traffic = result.content["content"]
        assert weather["tool_use_id"] == "tu_1"
        assert json.loads(weather["content"]) == {"city": "Oslo", "temp": 21}
        assert weather["is_error"] is False
        assert traffic["is_error"] is True
        assert json.loads(traffic["content"])["type"] == "CapabilityNotFound"


class TestOpenAIProvider:
    """Tests for OpenAIProvider."""

    def test_get_client_requires_key(self, monkeypatch):
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ConfigurationError):
            OpenAIProvider().get_client()

    @pytest.mark.asyncio
    async def test_call_model_params(self):
        client = Mock()
        client.responses.create = AsyncMock(return_value="response")
        provider = OpenAIProvider(api_key="k", model="gpt-test")

        await provider.call_model(client, {"system": "Be brief"}, make_context(client))

        kwargs = client.responses.create.await_args.kwargs
        assert kwargs["model"] == "gpt-test"
        assert kwargs["instructions"] == "Be brief"
        assert "system" not in kwargs
        assert kwargs["tools"][0] == {
            "type": "function",
            "name": "getWeather",
            "description": "Current weather",
            "parameters": WEATHER.schema.parameters,
        }
        assert kwargs["input"] == [{"role": "user", "content": "weather in Oslo?"}]

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        client = Mock()
        client.responses.create = AsyncMock(side_effect=RuntimeError("rate limited"))

        with pytest.raises(LLMError):
            await OpenAIProvider(api_key="k").call_model(client, {}, make_context(client))

    @pytest.mark.asyncio
    async def test_output_text_is_answer(self):
        context = make_context()
        response = SimpleNamespace(output_text="Sunny", output=[])

        assert await OpenAIProvider(api_key="k").interpret_response(response, context) == "Sunny"

    @pytest.mark.asyncio
    async def test_function_calls_produce_outputs(self):
        context = make_context()
        response = SimpleNamespace(
            output_text="",
            output=[
                SimpleNamespace(type="reasoning", id="rs_1", summary=[]),
                SimpleNamespace(
                    type="function_call",
                    call_id="call_1",
                    name="getWeather",
                    arguments='{"city": "Oslo"}',
                ),
                SimpleNamespace(
                    type="function_call", call_id="call_2", name="getWeather", arguments="{oops"
                ),
            ],
        )

        answer = await OpenAIProvider(api_key="k").interpret_response(response, context)

        assert answer is None
        entries = context.conversation.entries[1:]
        assert [e.type for e in entries] == [
            EntryType.MODEL_RESPONSE,
            EntryType.FUNCTION_CALL,
            EntryType.FUNCTION_RESULT,
            EntryType.FUNCTION_CALL,
            EntryType.FUNCTION_RESULT,
        ]
        assert json.loads(entries[2].content["output"]) == {"city": "Oslo", "temp": 21}
        assert entries[2].content["call_id"] == "call_1"
        assert json.loads(entries[4].content["output"])["type"] == "ValidationError"

    @pytest.mark.asyncio
    async def test_function_calls_run_when_text_present(self):
        """Test that preamble text does not hide function calls in the same response."""
        context = make_context()
        response = SimpleNamespace(
            output_text="Let me check the weather.",
            output=[
                SimpleNamespace(type="message", content=[]),
                SimpleNamespace(
                    type="function_call",
                    call_id="call_1",
                    name="getWeather",
                    arguments='{"city": "Oslo"}',
                ),
            ],
        )

        answer = await OpenAIProvider(api_key="k").interpret_response(response, context)

        assert answer is None
        preamble, call, result = context.conversation.entries[1:]
        assert preamble.type == EntryType.MODEL_RESPONSE
        assert preamble.content == {"role": "assistant", "content": "Let me check the weather."}
        assert call.content["name"] == "getWeather"
        assert json.loads(result.content["output"]) == {"city": "Oslo", "temp": 21}
