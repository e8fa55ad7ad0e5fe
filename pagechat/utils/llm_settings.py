from __future__ import annotations

import json
import os
from copy import deepcopy
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Optional

from pagechat.utils.logger import logger
from pagechat.utils.state_paths import state_root

_SETTINGS_DIR = state_root()
_SETTINGS_FILE = _SETTINGS_DIR / "llm_settings.json"

DEFAULT_MAX_TOKENS = 2048
DEFAULT_HISTORY_WINDOW = 10

_DEFAULT_SETTINGS: Dict[str, Any] = {
    "provider": "openrouter",
    "max_tokens": DEFAULT_MAX_TOKENS,
    "history_window": DEFAULT_HISTORY_WINDOW,
    "app": {
        "referer": "http://localhost:3000",
        "title": "PDF Selection Viewer",
    },
    "openrouter": {
        "api_key": "",
        "base_url": "https://openrouter.ai/api/v1",
        "model": "openai/gpt-4o-mini",
        "vision_model": "openai/gpt-4o-mini",
    },
    "openai": {
        "api_key": "",
        "base_url": "https://api.openai.com/v1",
        "model": "gpt-4o-mini",
        "vision_model": "gpt-4o-mini",
    },
    "ollama": {
        "host": "http://localhost:11434",
        "model": "llama3.2",
        "vision_model": "llama3.2-vision:latest",
    },
}

# Environment variables consulted when a settings value is empty.
_ENV_FALLBACKS: Dict[str, Dict[str, tuple[str, ...]]] = {
    "openrouter": {"api_key": ("OPENROUTER_API_KEY",)},
    "openai": {
        "api_key": ("OPENAI_API_KEY",),
        "base_url": ("OPENAI_BASE_URL",),
    },
    "ollama": {"host": ("OLLAMA_HOST",)},
}


@dataclass
class LLMConfig:
    """Resolved configuration describing the target provider and models."""

    provider: str
    model: str
    vision_model: str = ""
    max_tokens: int = DEFAULT_MAX_TOKENS
    history_window: int = DEFAULT_HISTORY_WINDOW
    params: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        self.params = dict(self.params or {})
        if not self.vision_model:
            self.vision_model = self.model

    @property
    def api_key(self) -> Optional[str]:
        return self.params.get("api_key")

    @property
    def base_url(self) -> Optional[str]:
        return self.params.get("base_url")

    @property
    def host(self) -> Optional[str]:
        return self.params.get("host")


def _deep_update(base: Dict[str, Any], override: Dict[str, Any]) -> Dict[str, Any]:
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(base.get(key), dict):
            base[key] = _deep_update(deepcopy(base[key]), value)
        else:
            base[key] = value
    return base


def _inject_env_defaults(provider: str, params: Dict[str, Any]) -> Dict[str, Any]:
    params = {k: v for k, v in params.items() if v not in (None, "")}
    for name, env_keys in _ENV_FALLBACKS.get(provider, {}).items():
        if params.get(name):
            continue
        for env_key in env_keys:
            value = str(os.getenv(env_key) or "").strip()
            if value:
                params[name] = value
                break
    return params


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def load_llm_settings() -> Dict[str, Any]:
    """Load saved settings, falling back to defaults when unavailable."""
    settings = deepcopy(_DEFAULT_SETTINGS)
    if not _SETTINGS_FILE.exists():
        return settings
    try:
        with _SETTINGS_FILE.open("r", encoding="utf-8") as fh:
            persisted = json.load(fh)
    except (json.JSONDecodeError, OSError) as exc:
        logger.warning("Ignoring unreadable LLM settings %s: %s", _SETTINGS_FILE, exc)
        return settings
    if not isinstance(persisted, dict):
        return settings
    return _deep_update(settings, persisted)


def save_llm_settings(settings: Dict[str, Any]) -> None:
    _SETTINGS_DIR.mkdir(parents=True, exist_ok=True)
    with _SETTINGS_FILE.open("w", encoding="utf-8") as fh:
        json.dump(settings, fh, indent=2)


def settings_path() -> Path:
    return _SETTINGS_FILE


def default_settings() -> Dict[str, Any]:
    return deepcopy(_DEFAULT_SETTINGS)


def resolve_llm_config(
    provider: Optional[str] = None,
    model: Optional[str] = None,
) -> LLMConfig:
    """Resolve the effective provider/model configuration.

    Explicit arguments win over the saved settings; empty provider values
    are filled from the environment (``OPENROUTER_API_KEY`` and friends).
    """
    settings = load_llm_settings()
    resolved_provider = str(provider or settings.get("provider") or "openrouter").strip().lower()
    block = dict(settings.get(resolved_provider) or {})
    params = _inject_env_defaults(resolved_provider, block)
    params["app"] = dict(settings.get("app") or {})

    saved_model = str(params.pop("model", "") or "").strip()
    vision_model = str(params.pop("vision_model", "") or "").strip()
    resolved_model = str(model or saved_model).strip()
    if not resolved_model:
        raise ValueError(
            f"No model configured for provider '{resolved_provider}'. "
            f"Set one in {settings_path()}."
        )
    return LLMConfig(
        provider=resolved_provider,
        model=resolved_model,
        vision_model=vision_model if not model else resolved_model,
        max_tokens=_as_int(settings.get("max_tokens"), DEFAULT_MAX_TOKENS),
        history_window=_as_int(settings.get("history_window"), DEFAULT_HISTORY_WINDOW),
        params=params,
    )
