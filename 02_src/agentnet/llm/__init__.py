"""Capability providers."""

from typing import Any

from ..errors import ConfigurationError
from .anthropic_provider import AnthropicProvider
from .base import (
    CapabilityResult,
    ICapabilityProvider,
    ModelCallContext,
    format_prompt,
    invoke_capability,
)
from .openai_provider import OpenAIProvider

_PROVIDERS = {
    "anthropic": AnthropicProvider,
    "openai": OpenAIProvider,
}


def create_provider(kind: str = "anthropic", **options: Any) -> ICapabilityProvider:
    """Resolve a provider by its configured name."""
    provider_cls = _PROVIDERS.get(kind.lower())
    if provider_cls is None:
        raise ConfigurationError(
            f"Unsupported provider: {kind}",
            {"supported_providers": sorted(_PROVIDERS)},
        )
    return provider_cls(**options)


__all__ = [
    "AnthropicProvider",
    "CapabilityResult",
    "ICapabilityProvider",
    "ModelCallContext",
    "OpenAIProvider",
    "create_provider",
    "format_prompt",
    "invoke_capability",
]
