from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any, AsyncIterator, Callable, Dict, List, Optional, Tuple

import httpx

from pagechat.utils.llm_settings import DEFAULT_MAX_TOKENS, LLMConfig
from pagechat.utils.logger import logger

from .base import ChatTransportError, StreamingChatProvider
from .registry import find_by_model, find_by_name, find_gateway

SSE_DATA_PREFIX = "data:"
SSE_DONE = "[DONE]"


@dataclass(frozen=True)
class OpenAICompatResolved:
    provider: str
    model: str
    api_key: str
    base_url: str
    vision_model: str = ""
    max_tokens: int = DEFAULT_MAX_TOKENS
    referer: str = ""
    title: str = ""


def resolve_openai_compat(config: LLMConfig) -> OpenAICompatResolved:
    provider_name = str(config.provider or "").strip().lower()
    model = str(config.model or "").strip()
    params = dict(config.params or {})
    api_key = str(params.get("api_key") or "").strip()
    base_url = str(params.get("base_url") or params.get("host") or "").strip()

    gateway = find_gateway(
        provider_name=provider_name,
        api_key=api_key or None,
        api_base=base_url or None,
    )
    spec = gateway or find_by_name(provider_name) or find_by_model(model)
    if spec is None:
        raise ValueError(f"Unsupported provider/model: {provider_name}:{model}")

    if not base_url:
        base_url = spec.default_api_base
    if spec.is_local:
        if not base_url.rstrip("/").endswith("/v1"):
            base_url = base_url.rstrip("/") + "/v1"
        if not api_key:
            api_key = spec.name
    elif spec.requires_api_key and not api_key:
        raise ValueError(
            f"{spec.name} requires an API key. Set {spec.env_key} or add it to the LLM settings."
        )

    app = dict(params.get("app") or {})
    return OpenAICompatResolved(
        provider=spec.name,
        model=model,
        api_key=api_key,
        base_url=base_url.rstrip("/"),
        vision_model=str(config.vision_model or model),
        max_tokens=int(config.max_tokens or DEFAULT_MAX_TOKENS),
        referer=str(app.get("referer") or ""),
        title=str(app.get("title") or ""),
    )


def parse_event_line(line: str) -> Tuple[Optional[str], bool]:
    """Decode one event-stream line into ``(text, done)``.

    Lines that are not ``data:`` events, malformed JSON and events without
    ``choices[0].delta.content`` all yield ``(None, False)``.
    """
    text = (line or "").strip()
    if not text.startswith(SSE_DATA_PREFIX):
        return None, False
    data = text[len(SSE_DATA_PREFIX):].strip()
    if data == SSE_DONE:
        return None, True
    try:
        parsed = json.loads(data)
    except ValueError:
        logger.debug("Skipping malformed stream event: %r", data[:200])
        return None, False
    try:
        content = parsed["choices"][0]["delta"].get("content")
    except (KeyError, IndexError, TypeError, AttributeError):
        return None, False
    if not isinstance(content, str) or not content:
        return None, False
    return content, False


def _has_image(messages: List[Dict[str, Any]]) -> bool:
    for message in messages:
        content = message.get("content")
        if isinstance(content, list) and any(
            isinstance(part, dict) and part.get("type") == "image_url" for part in content
        ):
            return True
    return False


class OpenAICompatStreamingProvider(StreamingChatProvider):
    """Streams chat completions from OpenAI-compatible APIs (OpenRouter/OpenAI/Ollama)."""

    def __init__(
        self,
        *,
        resolved: OpenAICompatResolved,
        client_factory: Optional[Callable[[OpenAICompatResolved], httpx.AsyncClient]] = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        self._resolved = resolved
        self._client_factory = client_factory
        self._timeout_seconds = float(timeout_seconds)

    @property
    def resolved(self) -> OpenAICompatResolved:
        return self._resolved

    def get_default_model(self) -> str:
        return self._resolved.model

    @property
    def endpoint(self) -> str:
        return f"{self._resolved.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        headers = {"Accept": "text/event-stream"}
        if self._resolved.api_key:
            headers["Authorization"] = f"Bearer {self._resolved.api_key}"
        if self._resolved.referer:
            headers["HTTP-Referer"] = self._resolved.referer
        if self._resolved.title:
            headers["X-Title"] = self._resolved.title
        return headers

    def _new_client(self) -> httpx.AsyncClient:
        if self._client_factory is not None:
            return self._client_factory(self._resolved)
        return httpx.AsyncClient(timeout=httpx.Timeout(self._timeout_seconds, connect=15.0))

    def build_payload(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        if not model:
            model = self._resolved.model
            if _has_image(messages) and self._resolved.vision_model:
                model = self._resolved.vision_model
        return {
            "model": model,
            "messages": list(messages),
            "max_tokens": int(max_tokens or self._resolved.max_tokens),
            "stream": True,
        }

    async def stream_chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> AsyncIterator[str]:
        payload = self.build_payload(messages, model=model, max_tokens=max_tokens)
        try:
            async with self._new_client() as client:
                async with client.stream(
                    "POST", self.endpoint, json=payload, headers=self._headers()
                ) as response:
                    if not response.is_success:
                        body = (await response.aread()).decode("utf-8", errors="replace")
                        raise ChatTransportError(f"{response.status_code} - {body}")
                    async for line in response.aiter_lines():
                        text, done = parse_event_line(line)
                        if done:
                            break
                        if text:
                            yield text
        except httpx.HTTPError as exc:
            raise ChatTransportError(str(exc) or exc.__class__.__name__) from exc
