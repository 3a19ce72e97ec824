"""PlannerConfig — planner configuration dataclass.

This is the pure-data configuration for the planner. No env vars,
no dotenv, no side effects at import time. The CLI layer (jarvis.config)
reads environment and builds a PlannerConfig from it.

For embedding behind an SMS webhook, callers construct PlannerConfig
directly with their own values.
"""
from __future__ import annotations

from dataclasses import dataclass, field

from jarvis.core import constants as C

VALID_PROVIDERS = {"anthropic", "openai", "azure", "local"}
VALID_TONES = set(C.TONE_LEVELS)


class PlannerConfigError(ValueError):
    """Raised when PlannerConfig validation fails."""


@dataclass
class PersonalitySettings:
    """Knobs for the personality engine."""

    base_tone: str = "medium"        # "mild" | "medium" | "spicy"
    match_user_energy: bool = True
    use_emoji: bool = True
    # Extra lines appended to the built-in banks (loaded from YAML)
    extra_comebacks: list[str] = field(default_factory=list)
    extra_greetings: list[str] = field(default_factory=list)


@dataclass
class PlannerConfig:
    """Planner configuration. Caller provides everything — no env var reading.

    An empty ``llm_provider`` means no language service: classification runs
    on patterns only and summaries fall back to the top search result.
    """

    # --- LLM ---
    llm_provider: str = ""                       # "anthropic" | "openai" | "azure" | "local" | ""
    llm_credentials: dict[str, str] = field(default_factory=dict)
    default_model: str = ""      # empty = provider default
    low_tier_model: str = ""     # used for classification/parsing

    classification_temperature: float = 0.1
    rendering_temperature: float = 0.8

    # --- History ---
    history_window: int = C.HISTORY_WINDOW
    history_weights: list[float] = field(default_factory=lambda: list(C.HISTORY_WEIGHTS))
    raw_history_cap: int = C.RAW_HISTORY_CAP

    # --- Personality ---
    styling_threshold: int = C.STYLING_THRESHOLD
    personality: PersonalitySettings = field(default_factory=PersonalitySettings)
    personality_file: str = ""   # optional YAML overrides
    seed: int | None = None      # seeds the response-bank random source

    # --- Policy ---
    admin_only_broadcasts: bool = False
    event_notice_window: int = C.EVENT_NOTICE_WINDOW   # seconds

    # --- Sweep ---
    stale_draft_age: int = C.STALE_DRAFT_AGE           # seconds
    stale_state_age: int = C.STALE_STATE_AGE           # seconds

    def has_language_service(self) -> bool:
        return bool(self.llm_provider)

    def validate(self) -> None:
        """Validate configuration. Raises PlannerConfigError on problems.

        Called automatically by PlannerEngine on construction.
        Can also be called manually for early validation.
        """
        errors: list[str] = []

        if self.llm_provider:
            if self.llm_provider not in VALID_PROVIDERS:
                errors.append(
                    f"llm_provider '{self.llm_provider}' not recognized. "
                    f"Valid: {', '.join(sorted(VALID_PROVIDERS))}"
                )
            elif self.llm_provider in ("anthropic", "openai"):
                if "api_key" not in self.llm_credentials:
                    errors.append(f"{self.llm_provider} requires 'api_key' in llm_credentials")
            elif self.llm_provider == "azure":
                if "api_key" not in self.llm_credentials:
                    errors.append("azure requires 'api_key' in llm_credentials")
                if "endpoint" not in self.llm_credentials:
                    errors.append("azure requires 'endpoint' in llm_credentials")

        for name in ("classification_temperature", "rendering_temperature"):
            value = getattr(self, name)
            if not 0.0 <= value <= 2.0:
                errors.append(f"{name} must be within [0, 2], got {value}")

        if self.history_window <= 0:
            errors.append("history_window must be positive")
        if len(self.history_weights) != self.history_window:
            errors.append(
                f"history_weights has {len(self.history_weights)} entries, "
                f"expected {self.history_window}"
            )
        if any(not 0.0 < w <= 1.0 for w in self.history_weights):
            errors.append("history_weights must all be within (0, 1]")
        if any(a < b for a, b in zip(self.history_weights, self.history_weights[1:])):
            errors.append("history_weights must be non-increasing (most recent first)")
        if self.raw_history_cap < self.history_window:
            errors.append("raw_history_cap must be >= history_window")

        if self.styling_threshold <= 0:
            errors.append("styling_threshold must be positive")
        if self.personality.base_tone not in VALID_TONES:
            errors.append(
                f"personality.base_tone '{self.personality.base_tone}' not recognized. "
                f"Valid: {', '.join(C.TONE_LEVELS)}"
            )

        for name in ("event_notice_window", "stale_draft_age", "stale_state_age"):
            if getattr(self, name) <= 0:
                errors.append(f"{name} must be positive")

        if errors:
            raise PlannerConfigError(
                f"PlannerConfig validation failed ({len(errors)} error(s)):\n"
                + "\n".join(f"  - {e}" for e in errors)
            )
