"""Model factory — create chat model instances for any supported provider.

Supports two usage modes:

1. **CLI mode** (default): Reads credentials from module-level globals
   populated by ``jarvis.config`` at import time. No ``config`` param needed.

2. **Engine mode**: Pass a ``config`` dict to ``make_model()`` with provider
   credentials. Bypasses module globals entirely, so it is safe for embedding.

   Expected config keys (all optional, provider-dependent):
     provider, api_key, openai_api_key, openai_api_base,
     azure_api_key, azure_endpoint, azure_api_version,
     default_model, low_tier_model
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable

from langchain_core.language_models import BaseChatModel

from jarvis.config import (
    ANTHROPIC_API_KEY,
    AZURE_OPENAI_API_KEY,
    AZURE_OPENAI_API_VERSION,
    AZURE_OPENAI_ENDPOINT,
    DEFAULT_MODEL,
    LLM_PROVIDER,
    LOW_TIER_MODEL,
    OPENAI_API_BASE,
    OPENAI_API_KEY,
)


@dataclass
class ProviderSpec:
    """Registration for an LLM provider."""
    factory: Callable  # fn(name, temperature, *, config=None) -> BaseChatModel
    default: str = ""  # default tier model ID
    low: str = ""      # low tier model ID (classification, parsing)


def _cfg(config: dict | None, key: str, default: str = "") -> str:
    """Get a config value, falling back to module-level globals."""
    if config and key in config:
        return config[key]
    _GLOBALS = {
        "provider": LLM_PROVIDER,
        "api_key": ANTHROPIC_API_KEY,
        "openai_api_key": OPENAI_API_KEY,
        "openai_api_base": OPENAI_API_BASE,
        "azure_api_key": AZURE_OPENAI_API_KEY,
        "azure_endpoint": AZURE_OPENAI_ENDPOINT,
        "azure_api_version": AZURE_OPENAI_API_VERSION,
        "default_model": DEFAULT_MODEL,
        "low_tier_model": LOW_TIER_MODEL,
    }
    return _GLOBALS.get(key, default)


def _detect_provider(model_name: str, *, config: dict | None = None) -> str:
    """Explicit provider first, then ``provider/`` prefix, then model-name heuristics."""
    explicit = _cfg(config, "provider")
    if explicit:
        return explicit
    for provider in _REGISTRY:
        if model_name.startswith(f"{provider}/"):
            return provider
    if model_name.startswith(("gpt-", "o1-", "o3-", "o4-")):
        return "azure" if _cfg(config, "azure_endpoint") else "openai"
    if model_name.startswith("claude-"):
        return "anthropic"
    if _cfg(config, "azure_endpoint") and _cfg(config, "azure_api_key"):
        return "azure"
    if _cfg(config, "openai_api_key"):
        return "openai"
    return "anthropic"


def resolve_model_name(model_name: str = "", tier: str = "default", *, config: dict | None = None) -> str:
    """Resolve model name from explicit override or tier."""
    if model_name:
        return model_name
    if tier == "low":
        return _cfg(config, "low_tier_model") or _cfg(config, "default_model")
    return _cfg(config, "default_model")


def _make_anthropic(name: str, temperature: float, *, config: dict | None = None) -> BaseChatModel:
    from langchain_anthropic import ChatAnthropic

    return ChatAnthropic(
        model=name,
        api_key=_cfg(config, "api_key"),
        temperature=temperature,
        max_tokens=1024,
    )


def _make_openai(name: str, temperature: float, *, config: dict | None = None) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    kwargs: dict = {
        "model": name,
        "api_key": _cfg(config, "openai_api_key") or _cfg(config, "api_key"),
        "temperature": temperature,
    }
    base_url = _cfg(config, "openai_api_base")
    if base_url:
        kwargs["base_url"] = base_url
    return ChatOpenAI(**kwargs)


def _make_azure(name: str, temperature: float, *, config: dict | None = None) -> BaseChatModel:
    from langchain_openai import AzureChatOpenAI

    return AzureChatOpenAI(
        azure_deployment=name,
        azure_endpoint=_cfg(config, "azure_endpoint"),
        api_key=_cfg(config, "azure_api_key") or _cfg(config, "api_key"),
        api_version=_cfg(config, "azure_api_version") or "2024-12-01-preview",
        temperature=temperature,
    )


def _make_local(name: str, temperature: float, *, config: dict | None = None) -> BaseChatModel:
    from langchain_openai import ChatOpenAI

    base_url = _cfg(config, "openai_api_base") or "http://localhost:8000/v1"
    api_key = _cfg(config, "openai_api_key") or _cfg(config, "api_key") or "not-needed"
    return ChatOpenAI(model=name, api_key=api_key, base_url=base_url, temperature=temperature)


_REGISTRY: dict[str, ProviderSpec] = {
    "anthropic": ProviderSpec(_make_anthropic, "claude-sonnet-4-5-20250929", "claude-haiku-4-5-20251001"),
    "openai": ProviderSpec(_make_openai, "gpt-4o", "gpt-4o-mini"),
    "azure": ProviderSpec(_make_azure, "gpt-4o", "gpt-4o-mini"),
    "local": ProviderSpec(_make_local),
}


def make_model(
    model_name: str = "",
    tier: str = "default",
    *,
    temperature: float = 0.1,
    config: dict | None = None,
) -> BaseChatModel:
    """Create a chat model instance for the appropriate provider.

    Args:
        model_name: Explicit model ID. If empty, resolved from tier, then
            from the provider's registered default for that tier.
        tier: "default" or "low".
        temperature: Sampling temperature (low for classification).
        config: Optional credentials dict for engine mode.

    Returns:
        A LangChain chat model instance.
    """
    name = resolve_model_name(model_name, tier, config=config)
    provider = _detect_provider(name, config=config)

    spec = _REGISTRY.get(provider)
    if spec is None:
        raise ValueError(
            f"Unknown LLM provider '{provider}'. "
            f"Supported: {', '.join(_REGISTRY)}"
        )

    prefix = f"{provider}/"
    if name.startswith(prefix):
        name = name[len(prefix):]
    if not name:
        name = (spec.low if tier == "low" else "") or spec.default
    if not name:
        raise ValueError(f"Provider '{provider}' has no default model; set JARVIS_DEFAULT_MODEL")

    return spec.factory(name, temperature, config=config)
