"""Capability provider using the Anthropic Messages API."""

import os
from typing import Any

import anthropic

from ..errors import ConfigurationError, LLMError
from ..logging_config import get_logger
from ..session import Conversation
from .base import ModelCallContext, format_prompt, invoke_capability

logger = get_logger(__name__)

DEFAULT_MODEL = "claude-sonnet-4-5"
DEFAULT_MAX_TOKENS = 1024


def _block_param(block: Any) -> dict[str, Any] | None:
    """Convert a response content block to its request form."""
    if block.type == "text":
        return {"type": "text", "text": block.text}
    if block.type == "tool_use":
        return {
            "type": "tool_use",
            "id": block.id,
            "name": block.name,
            "input": block.input,
        }
    return None


class AnthropicProvider:
    """Anthropic Claude API provider."""

    provider_type = "anthropic"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        system: str | None = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
        client: anthropic.AsyncAnthropic | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._system = system
        self._max_tokens = max_tokens
        self._client = client

    def get_client(self) -> anthropic.AsyncAnthropic:
        if self._client is None:
            api_key = self._api_key or os.getenv("ANTHROPIC_API_KEY")
            if not api_key:
                raise ConfigurationError("ANTHROPIC_API_KEY environment variable not set")
            self._client = anthropic.AsyncAnthropic(api_key=api_key)
        return self._client

    def append_prompt(self, conversation: Conversation, prompt: Any) -> None:
        conversation.add_user_input({"role": "user", "content": format_prompt(prompt)})

    async def call_model(
        self,
        client: anthropic.AsyncAnthropic,
        model_config: dict[str, Any],
        context: ModelCallContext,
    ) -> Any:
        """Generate a completion with the capability map as tools."""
        params: dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            **model_config,
        }
        system = params.pop("system", None) or self._system
        if system:
            params["system"] = system

        tools = [
            {
                "name": capability.name,
                "description": capability.schema.description,
                "input_schema": capability.schema.parameters,
            }
            for capability in context.capabilities.values()
        ]
        if tools:
            params["tools"] = tools
        params["messages"] = context.conversation.messages()

        try:
            return await client.messages.create(**params)
        except Exception as e:
            raise LLMError(f"LLM API error: {e}", self.provider_type) from e

    async def interpret_response(self, response: Any, context: ModelCallContext) -> Any | None:
        tool_uses = [block for block in response.content if block.type == "tool_use"]
        text = "".join(block.text for block in response.content if block.type == "text")

        if not tool_uses:
            context.conversation.add_model_response({"role": "assistant", "content": text})
            return text

        # The assistant turn must carry every tool_use block it issued
        blocks = [p for p in (_block_param(b) for b in response.content) if p is not None]
        context.conversation.add_function_call({"role": "assistant", "content": blocks})

        results = []
        for block in tool_uses:
            logger.debug("Calling capability %s", block.name)
            result = await invoke_capability(block.name, block.input or {}, context)
            results.append(
                {
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": result.text,
                    "is_error": result.is_error,
                }
            )
        context.conversation.add_function_result({"role": "user", "content": results})
        return None
