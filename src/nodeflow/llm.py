from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .logging import get_logger

logger = get_logger(__name__)

# providers speaking the OpenAI chat-completions dialect
PROVIDER_URLS = {
    "openai": "https://api.openai.com/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openrouter": "https://openrouter.ai/api/v1",
}
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
ANTHROPIC_VERSION = "2023-06-01"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"

PROVIDERS = [*PROVIDER_URLS, "anthropic", "gemini"]

DEFAULT_MODEL = "gpt-4o-mini"
DEFAULT_MODELS = {
    "anthropic": "claude-3-haiku-20240307",
    "gemini": "gemini-2.5-pro",
}

# sampling parameters are fixed for every chat node
SAMPLING = {
    "max_tokens": 1000,
    "temperature": 0.7,
    "top_p": 1,
    "frequency_penalty": 0,
    "presence_penalty": 0,
}

Request = Tuple[str, Dict[str, str], Dict[str, Any], Optional[Dict[str, str]]]


@dataclass
class ChatCompletion:
    content: str
    total_tokens: int


def sanitize_model(raw: Any, default: str = DEFAULT_MODEL) -> str:
    model = re.sub(r"\s+", "-", str(raw or "").strip().lower())
    return model or default


def build_messages(prompt: str, system: str = "") -> List[Dict[str, str]]:
    messages = []
    if system:
        messages.append({"role": "system", "content": system})
    messages.append({"role": "user", "content": prompt})
    return messages


def _split_system(messages: List[Dict[str, str]]) -> Tuple[str, List[Dict[str, str]]]:
    system = "\n".join(m["content"] for m in messages if m["role"] == "system")
    return system, [m for m in messages if m["role"] != "system"]


def _build_request(provider: str, model: str, messages: List[Dict[str, str]], api_key: str) -> Request:
    if provider in PROVIDER_URLS:
        headers = {"Authorization": f"Bearer {api_key}"}
        return f"{PROVIDER_URLS[provider]}/chat/completions", headers, {"model": model, "messages": messages, **SAMPLING}, None

    system, turns = _split_system(messages)
    if provider == "anthropic":
        payload: Dict[str, Any] = {
            "model": model,
            "messages": turns,
            "max_tokens": SAMPLING["max_tokens"],
            "temperature": SAMPLING["temperature"],
        }
        if system:
            payload["system"] = system
        headers = {"x-api-key": api_key, "anthropic-version": ANTHROPIC_VERSION}
        return ANTHROPIC_URL, headers, payload, None

    # gemini
    payload = {
        "contents": [{"role": "model" if m["role"] == "assistant" else "user", "parts": [{"text": m["content"]}]}
                     for m in turns],
        "generationConfig": {
            "maxOutputTokens": SAMPLING["max_tokens"],
            "temperature": SAMPLING["temperature"],
            "topP": SAMPLING["top_p"],
        },
    }
    if system:
        payload["systemInstruction"] = {"parts": [{"text": system}]}
    return GEMINI_URL.format(model=model), {}, payload, {"key": api_key}


def _parse_reply(provider: str, data: Dict[str, Any]) -> ChatCompletion:
    if provider == "anthropic":
        content = "".join(b.get("text", "") for b in data.get("content") or [] if b.get("type") == "text")
        usage = data.get("usage") or {}
        tokens = (usage.get("input_tokens") or 0) + (usage.get("output_tokens") or 0)
    elif provider == "gemini":
        candidates = data.get("candidates") or []
        parts = ((candidates[0].get("content") or {}).get("parts") or []) if candidates else []
        content = "".join(p.get("text", "") for p in parts)
        tokens = (data.get("usageMetadata") or {}).get("totalTokenCount") or 0
    else:
        content = data["choices"][0]["message"]["content"]
        tokens = (data.get("usage") or {}).get("total_tokens") or 0
    return ChatCompletion(content=content, total_tokens=int(tokens))


async def complete_chat(provider: str, model: str, messages: List[Dict[str, str]], api_key: str, *,
                        timeout: float = 30.0, client: Optional[httpx.AsyncClient] = None) -> ChatCompletion:
    """POST one chat request to the provider; raises on transport errors and non-2xx replies."""
    if provider not in PROVIDERS:
        raise ValueError(f"Unsupported provider '{provider}'. Use one of: {', '.join(PROVIDERS)}")
    if not api_key:
        raise ValueError(f"API key for provider '{provider}' is not set")

    url, headers, payload, params = _build_request(provider, model, messages, api_key)
    headers["Content-Type"] = "application/json"

    if client is None:
        async with httpx.AsyncClient(timeout=timeout) as owned:
            response = await owned.post(url, json=payload, headers=headers, params=params)
    else:
        response = await client.post(url, json=payload, headers=headers, params=params)

    if response.is_error:
        raise RuntimeError(f"{provider} API returned status {response.status_code}")
    completion = _parse_reply(provider, response.json())
    logger.info("Chat completion received", provider=provider, model=model, tokens=completion.total_tokens)
    return completion
