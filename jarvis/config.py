"""Configuration — loads .env, reads JARVIS_* variables, builds a PlannerConfig.

This is the CLI/environment layer. Embedders construct ``PlannerConfig``
directly and never import this module.
"""
from __future__ import annotations

import os
from pathlib import Path

from dotenv import load_dotenv

from jarvis.core import constants as C
from jarvis.core.config import PersonalitySettings, PlannerConfig

WORKSPACE = Path(os.getenv("JARVIS_HOME", "")).expanduser() if os.getenv("JARVIS_HOME") else Path.cwd()

# load_dotenv won't override variables already set in the environment
load_dotenv(WORKSPACE / ".env")

STATE_DIR = Path(os.getenv("JARVIS_STATE_DIR", str(WORKSPACE / ".jarvis"))).expanduser()

# --- Provider selection ---
LLM_PROVIDER = os.getenv("JARVIS_LLM_PROVIDER", "")
DEFAULT_MODEL = os.getenv("JARVIS_DEFAULT_MODEL", "")
LOW_TIER_MODEL = os.getenv("JARVIS_LOW_TIER_MODEL", "")

# --- Anthropic ---
ANTHROPIC_API_KEY = os.getenv("ANTHROPIC_API_KEY", "")

# --- OpenAI (and OpenAI-compatible local servers) ---
OPENAI_API_KEY = os.getenv("OPENAI_API_KEY", "")
OPENAI_API_BASE = os.getenv("OPENAI_API_BASE", "")

# --- Azure OpenAI ---
AZURE_OPENAI_API_KEY = os.getenv("AZURE_OPENAI_API_KEY", "")
AZURE_OPENAI_ENDPOINT = os.getenv("AZURE_OPENAI_ENDPOINT", "")
AZURE_OPENAI_API_VERSION = os.getenv("AZURE_OPENAI_API_VERSION", "2024-12-01-preview")

# --- Planner knobs ---
CLASSIFICATION_TEMPERATURE = float(os.getenv("JARVIS_CLASSIFICATION_TEMPERATURE", "0.1"))
RENDERING_TEMPERATURE = float(os.getenv("JARVIS_RENDERING_TEMPERATURE", "0.8"))
STYLING_THRESHOLD = int(os.getenv("JARVIS_STYLING_THRESHOLD", str(C.STYLING_THRESHOLD)))
BASE_TONE = os.getenv("JARVIS_BASE_TONE", "medium")
PERSONALITY_FILE = os.getenv("JARVIS_PERSONALITY_FILE", "")
ADMIN_ONLY_BROADCASTS = os.getenv("JARVIS_ADMIN_ONLY_BROADCASTS", "").lower() in ("1", "true", "yes")
SEED = int(os.environ["JARVIS_SEED"]) if os.getenv("JARVIS_SEED") else None


def _credentials(provider: str) -> dict[str, str]:
    if provider == "anthropic":
        return {"api_key": ANTHROPIC_API_KEY} if ANTHROPIC_API_KEY else {}
    if provider in ("openai", "local"):
        creds = {"api_key": OPENAI_API_KEY} if OPENAI_API_KEY else {}
        if OPENAI_API_BASE:
            creds["base_url"] = OPENAI_API_BASE
        return creds
    if provider == "azure":
        creds = {"api_version": AZURE_OPENAI_API_VERSION}
        if AZURE_OPENAI_API_KEY:
            creds["api_key"] = AZURE_OPENAI_API_KEY
        if AZURE_OPENAI_ENDPOINT:
            creds["endpoint"] = AZURE_OPENAI_ENDPOINT
        return creds
    return {}


def _detect_provider() -> str:
    """Explicit JARVIS_LLM_PROVIDER wins, then whichever credentials are present."""
    if LLM_PROVIDER:
        return LLM_PROVIDER
    if AZURE_OPENAI_ENDPOINT and AZURE_OPENAI_API_KEY:
        return "azure"
    if OPENAI_API_KEY:
        return "openai"
    if ANTHROPIC_API_KEY:
        return "anthropic"
    return ""


def load_config(*, offline: bool = False, seed: int | None = None) -> PlannerConfig:
    """Build a PlannerConfig from the environment.

    Args:
        offline: Ignore provider credentials (pattern-only classification).
        seed: Overrides JARVIS_SEED.
    """
    provider = "" if offline else _detect_provider()
    return PlannerConfig(
        llm_provider=provider,
        llm_credentials=_credentials(provider),
        default_model=DEFAULT_MODEL,
        low_tier_model=LOW_TIER_MODEL,
        classification_temperature=CLASSIFICATION_TEMPERATURE,
        rendering_temperature=RENDERING_TEMPERATURE,
        styling_threshold=STYLING_THRESHOLD,
        personality=PersonalitySettings(base_tone=BASE_TONE),
        personality_file=PERSONALITY_FILE,
        seed=seed if seed is not None else SEED,
        admin_only_broadcasts=ADMIN_ONLY_BROADCASTS,
    )
