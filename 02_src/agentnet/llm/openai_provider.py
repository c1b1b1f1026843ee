"""Capability provider using the OpenAI Responses API."""

import json
import os
from typing import Any

from openai import AsyncOpenAI

from ..errors import ConfigurationError, LLMError
from ..logging_config import get_logger
from ..session import Conversation
from .base import ModelCallContext, format_prompt, invoke_capability

logger = get_logger(__name__)

DEFAULT_MODEL = "gpt-4.1"


class OpenAIProvider:
    """OpenAI provider. Conversation entries are Responses API input items."""

    provider_type = "openai"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        system: str | None = None,
        base_url: str | None = None,
        client: AsyncOpenAI | None = None,
    ):
        self._api_key = api_key
        self._model = model
        self._system = system
        self._base_url = base_url
        self._client = client

    def get_client(self) -> AsyncOpenAI:
        if self._client is None:
            api_key = self._api_key or os.getenv("OPENAI_API_KEY")
            if not api_key:
                raise ConfigurationError("OPENAI_API_KEY environment variable not set")
            self._client = AsyncOpenAI(api_key=api_key, base_url=self._base_url)
        return self._client

    def append_prompt(self, conversation: Conversation, prompt: Any) -> None:
        conversation.add_user_input({"role": "user", "content": format_prompt(prompt)})

    async def call_model(
        self,
        client: AsyncOpenAI,
        model_config: dict[str, Any],
        context: ModelCallContext,
    ) -> Any:
        params: dict[str, Any] = {"model": self._model, **model_config}
        instructions = params.pop("system", None) or self._system
        if instructions:
            params["instructions"] = instructions

        tools = [
            {
                "type": "function",
                "name": capability.name,
                "description": capability.schema.description,
                "parameters": capability.schema.parameters,
            }
            for capability in context.capabilities.values()
        ]
        if tools:
            params["tools"] = tools
        params["input"] = context.conversation.messages()

        try:
            return await client.responses.create(**params)
        except Exception as e:
            raise LLMError(f"LLM API error: {e}", self.provider_type) from e

    async def interpret_response(self, response: Any, context: ModelCallContext) -> Any | None:
        calls = [item for item in response.output if item.type == "function_call"]
        text = getattr(response, "output_text", None)
        if not calls:
            context.conversation.add_model_response({"role": "assistant", "content": text or ""})
            return text or ""

        # Preamble text and reasoning are replayed ahead of the calls
        for item in response.output:
            if item.type == "reasoning":
                context.conversation.add_model_response(
                    {
                        "type": "reasoning",
                        "id": item.id,
                        "summary": [
                            {"type": "summary_text", "text": part.text}
                            for part in (item.summary or [])
                        ],
                    }
                )
        if text:
            context.conversation.add_model_response({"role": "assistant", "content": text})

        for item in calls:
            context.conversation.add_function_call(
                {
                    "type": "function_call",
                    "call_id": item.call_id,
                    "name": item.name,
                    "arguments": item.arguments,
                }
            )
            try:
                args = json.loads(item.arguments or "{}")
            except json.JSONDecodeError as e:
                logger.warning("Model sent malformed arguments for %s: %s", item.name, e)
                output = json.dumps(
                    {
                        "error": True,
                        "type": "ValidationError",
                        "message": f"Arguments are not valid JSON: {e}",
                    }
                )
            else:
                output = (await invoke_capability(item.name, args, context)).text

            context.conversation.add_function_result(
                {"type": "function_call_output", "call_id": item.call_id, "output": output}
            )
        return None
