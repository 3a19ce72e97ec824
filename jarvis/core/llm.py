"""Language-service interface used by the classifier and handlers.

The planner never talks to a model directly. Everything goes through
``LanguageService``: a structured JSON request in, a JSON object (or plain
text) out. ``task`` names the call site ("classify", "content_answer", ...)
so alternative backends and test fakes can route on it.

``LangChainLanguageService`` is the default backend: LangChain chat models
built by ``jarvis.models.make_model``, one instance per temperature.
"""
from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

from jarvis.core.errors import LanguageServiceError

if TYPE_CHECKING:
    from jarvis.core.config import PlannerConfig

logger = logging.getLogger(__name__)


@runtime_checkable
class LanguageService(Protocol):
    """Narrow contract for the external classification/summarization service.

    Implementations raise ``LanguageServiceError`` when the service is
    unreachable or its output is not usable. Callers degrade on that error.
    """

    async def complete_json(
        self,
        task: str,
        system: str,
        payload: dict[str, Any],
        *,
        temperature: float,
    ) -> dict[str, Any]:
        """Send a structured context, get back a JSON object."""
        ...

    async def complete_text(
        self,
        task: str,
        system: str,
        prompt: str,
        *,
        temperature: float,
    ) -> str:
        """Free-text completion (summaries, rewrites)."""
        ...


def strip_fences(text: str) -> str:
    """Remove a surrounding markdown code fence, if any."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[-1].rsplit("```", 1)[0].strip()
    return text


def parse_json_object(text: str) -> dict[str, Any]:
    """Parse service output as a JSON object or raise LanguageServiceError."""
    try:
        data = json.loads(strip_fences(text))
    except json.JSONDecodeError as exc:
        raise LanguageServiceError(f"service returned non-JSON output: {exc}") from exc
    if not isinstance(data, dict):
        raise LanguageServiceError(
            f"service returned {type(data).__name__}, expected a JSON object"
        )
    return data


class LangChainLanguageService:
    """LanguageService backed by LangChain chat models.

    Args:
        config: PlannerConfig with provider, credentials and model names.
    """

    def __init__(self, config: PlannerConfig) -> None:
        self.config = config
        self._models: dict[float, Any] = {}

    def _model_config(self) -> dict[str, str]:
        creds = dict(self.config.llm_credentials)
        cfg: dict[str, str] = {"provider": self.config.llm_provider}
        if self.config.llm_provider == "azure":
            cfg["azure_api_key"] = creds.get("api_key", "")
            cfg["azure_endpoint"] = creds.get("endpoint", "")
            if "api_version" in creds:
                cfg["azure_api_version"] = creds["api_version"]
        elif self.config.llm_provider in ("openai", "local"):
            cfg["openai_api_key"] = creds.get("api_key", "")
            if "base_url" in creds:
                cfg["openai_api_base"] = creds["base_url"]
        else:
            cfg["api_key"] = creds.get("api_key", "")
        if self.config.default_model:
            cfg["default_model"] = self.config.default_model
        if self.config.low_tier_model:
            cfg["low_tier_model"] = self.config.low_tier_model
        return cfg

    def _model(self, temperature: float) -> Any:
        model = self._models.get(temperature)
        if model is None:
            from jarvis.models import make_model

            # Deterministic work (classification, parsing) runs on the low tier
            tier = "low" if temperature <= self.config.classification_temperature else "default"
            model = make_model(tier=tier, temperature=temperature, config=self._model_config())
            self._models[temperature] = model
        return model

    async def _invoke(self, task: str, system: str, prompt: str, temperature: float) -> str:
        from langchain_core.messages import HumanMessage, SystemMessage

        try:
            response = await self._model(temperature).ainvoke(
                [SystemMessage(content=system), HumanMessage(content=prompt)]
            )
        except Exception as exc:
            logger.warning("Language service call '%s' failed: %s", task, exc)
            raise LanguageServiceError(f"{task}: {exc}") from exc

        content = response.content
        if not isinstance(content, str):
            # Anthropic returns a list of content blocks
            content = "".join(
                block.get("text", "") if isinstance(block, dict) else str(block)
                for block in content
            )
        return content.strip()

    async def complete_json(
        self,
        task: str,
        system: str,
        payload: dict[str, Any],
        *,
        temperature: float,
    ) -> dict[str, Any]:
        prompt = json.dumps(payload, ensure_ascii=False, indent=2)
        text = await self._invoke(task, system + "\n\nRespond with ONLY valid JSON.", prompt, temperature)
        return parse_json_object(text)

    async def complete_text(
        self,
        task: str,
        system: str,
        prompt: str,
        *,
        temperature: float,
    ) -> str:
        text = await self._invoke(task, system, prompt, temperature)
        if not text:
            raise LanguageServiceError(f"{task}: empty response")
        return text


def build_language_service(config: PlannerConfig) -> LanguageService | None:
    """Return the default service for ``config``, or None when no provider is set."""
    if not config.has_language_service():
        return None
    return LangChainLanguageService(config)
