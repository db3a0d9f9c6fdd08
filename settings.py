"""
Runtime configuration: API key lookup and model selection.

The API key is read from (in order):
1) st.secrets["GEMINI_API_KEY"] (Streamlit Cloud Secrets or .streamlit/secrets.toml)
2) environment variable GEMINI_API_KEY
3) environment variable API_KEY
A local .env file is loaded into the environment on import.
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

import streamlit as st
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

# =============================================================================
# Defaults
# =============================================================================

DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_ANALYSIS_MODEL = "gemini-3-flash-preview"
DEFAULT_GENERATION_MODEL = "gemini-2.5-flash-image"
DEFAULT_TIMEOUT = 120.0  # seconds per request

ANALYSIS_MODELS = ["gemini-3-flash-preview", "gemini-2.5-flash", "gemini-2.5-pro"]
GENERATION_MODELS = ["gemini-2.5-flash-image", "gemini-3-pro-image-preview"]


def _secret_api_key() -> Optional[str]:
    try:
        return st.secrets.get("GEMINI_API_KEY")  # type: ignore[attr-defined]
    except Exception:
        # st.secrets raises when no secrets file exists
        return None


def read_env_api_key() -> Optional[str]:
    """Return the Gemini API key from secrets, then the environment."""
    return _secret_api_key() or os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY")


def api_key_source() -> str:
    """Return a human-readable source of the API key for UI display."""
    if _secret_api_key():
        return "Secrets"
    if os.environ.get("GEMINI_API_KEY") or os.environ.get("API_KEY"):
        return "Env"
    return "None"


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Ignoring non-numeric %s=%r, using %s", name, raw, default)
        return default


def _env_log_level(name: str, default: str = "INFO") -> str:
    raw = os.environ.get(name)
    if not raw:
        return default
    level = raw.strip().upper()
    if not isinstance(logging.getLevelName(level), int):
        logger.warning("Ignoring unknown %s=%r, using %s", name, raw, default)
        return default
    return level


@dataclass(frozen=True)
class Settings:
    api_key: Optional[str]
    api_base: str = DEFAULT_API_BASE
    analysis_model: str = DEFAULT_ANALYSIS_MODEL
    generation_model: str = DEFAULT_GENERATION_MODEL
    timeout: float = DEFAULT_TIMEOUT
    log_level: str = "INFO"


def load_settings() -> Settings:
    return Settings(
        api_key=read_env_api_key(),
        api_base=os.environ.get("GEMINI_API_BASE", DEFAULT_API_BASE).rstrip("/"),
        analysis_model=os.environ.get("STYLE_ANALYSIS_MODEL", DEFAULT_ANALYSIS_MODEL),
        generation_model=os.environ.get("STYLE_GENERATION_MODEL", DEFAULT_GENERATION_MODEL),
        timeout=_env_float("GEMINI_TIMEOUT", DEFAULT_TIMEOUT),
        log_level=_env_log_level("LOG_LEVEL"),
    )
