from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Tuple


@dataclass(frozen=True)
class ProviderSpec:
    name: str
    keywords: Tuple[str, ...]
    env_key: str
    default_api_base: str = ""
    detect_by_key_prefix: str = ""
    detect_by_base_keyword: str = ""
    is_gateway: bool = False
    is_local: bool = False
    requires_api_key: bool = True


PROVIDERS: Tuple[ProviderSpec, ...] = (
    ProviderSpec(
        name="openrouter",
        keywords=("openrouter",),
        env_key="OPENROUTER_API_KEY",
        default_api_base="https://openrouter.ai/api/v1",
        detect_by_key_prefix="sk-or-",
        detect_by_base_keyword="openrouter",
        is_gateway=True,
    ),
    ProviderSpec(
        name="ollama",
        keywords=("ollama", "llama", "qwen"),
        env_key="OLLAMA_API_KEY",
        default_api_base="http://localhost:11434/v1",
        detect_by_base_keyword="localhost:11434",
        is_local=True,
        requires_api_key=False,
    ),
    ProviderSpec(
        name="openai",
        keywords=("openai", "gpt"),
        env_key="OPENAI_API_KEY",
        default_api_base="https://api.openai.com/v1",
    ),
)


def find_by_name(name: str) -> Optional[ProviderSpec]:
    key = str(name or "").strip().lower()
    for spec in PROVIDERS:
        if spec.name == key:
            return spec
    return None


def find_by_model(model: str) -> Optional[ProviderSpec]:
    text = str(model or "").strip().lower()
    if not text:
        return None
    for spec in PROVIDERS:
        if any(keyword in text for keyword in spec.keywords):
            return spec
    return None


def find_gateway(
    *,
    provider_name: Optional[str] = None,
    api_key: Optional[str] = None,
    api_base: Optional[str] = None,
) -> Optional[ProviderSpec]:
    """Detect a gateway from the provider name, key prefix or base URL."""
    named = find_by_name(provider_name or "")
    if named is not None and named.is_gateway:
        return named
    for spec in PROVIDERS:
        if not spec.is_gateway:
            continue
        if api_key and spec.detect_by_key_prefix and api_key.startswith(spec.detect_by_key_prefix):
            return spec
        if api_base and spec.detect_by_base_keyword and spec.detect_by_base_keyword in api_base:
            return spec
    return None
