"""
LLM Providers
Thin httpx wrappers around the text-generation APIs used by the pick cycle
"""

import logging
import re

import httpx

from market_oracle.core.config import get_settings, get_provider_api_key

settings = get_settings()
logger = logging.getLogger(__name__)

OPENAI_URL = "https://api.openai.com/v1/chat/completions"
ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
PERPLEXITY_URL = "https://api.perplexity.ai/chat/completions"
GROQ_URL = "https://api.groq.com/openai/v1/chat/completions"

SUPPORTED_PROVIDERS = {"openai", "anthropic", "google", "perplexity", "groq"}

_FENCE_RE = re.compile(r"```(?:json)?\n?")


class ProviderError(Exception):
    """Provider call failed or returned nothing usable"""
    pass


def strip_code_fences(text: str) -> str:
    """Remove markdown code fences around a model answer"""
    return _FENCE_RE.sub("", text or "").strip()


def _chat_payload(model: str, system: str, prompt: str, max_tokens: int, temperature: float) -> dict:
    return {
        "model": model,
        "messages": [
            {"role": "system", "content": system},
            {"role": "user", "content": prompt},
        ],
        "max_tokens": max_tokens,
        "temperature": temperature,
    }


def _chat_content(data: dict) -> str:
    choices = data.get("choices") or [{}]
    return ((choices[0] or {}).get("message") or {}).get("content") or ""


async def call_provider(
    provider: str,
    model: str,
    prompt: str,
    system: str = "",
    max_tokens: int | None = None,
    temperature: float = 0.3,
) -> str:
    """
    Send one prompt to a provider and return the raw text answer.

    Raises ProviderError for unknown providers, missing keys, non-2xx
    responses and empty answers. No retries.
    """
    p = (provider or "").strip().lower()
    if p not in SUPPORTED_PROVIDERS:
        raise ProviderError(f"Unknown provider: {provider}")

    api_key = get_provider_api_key(p)
    if not api_key:
        raise ProviderError(f"Missing API key for {p}")

    tokens = max_tokens or settings.llm_max_tokens

    if p == "anthropic":
        url = ANTHROPIC_URL
        headers = {
            "x-api-key": api_key,
            "anthropic-version": "2023-06-01",
            "Content-Type": "application/json",
        }
        payload = {
            "model": model,
            "max_tokens": tokens,
            "temperature": temperature,
            "system": system,
            "messages": [{"role": "user", "content": prompt}],
        }
        params = None
    elif p == "google":
        url = GEMINI_URL.format(model=model)
        headers = {"Content-Type": "application/json"}
        full_prompt = f"{system}\n\n{prompt}" if system else prompt
        payload = {"contents": [{"parts": [{"text": full_prompt}]}]}
        params = {"key": api_key}
    else:
        url = {"openai": OPENAI_URL, "perplexity": PERPLEXITY_URL, "groq": GROQ_URL}[p]
        headers = {"Authorization": f"Bearer {api_key}", "Content-Type": "application/json"}
        payload = _chat_payload(model, system, prompt, tokens, temperature)
        params = None

    try:
        async with httpx.AsyncClient(timeout=settings.http_timeout_seconds) as client:
            response = await client.post(url, headers=headers, json=payload, params=params)
    except httpx.HTTPError as e:
        raise ProviderError(f"{p} request failed: {e}") from e

    if response.status_code < 200 or response.status_code >= 300:
        raise ProviderError(f"{p} returned HTTP {response.status_code}")

    try:
        data = response.json()
    except ValueError as e:
        raise ProviderError(f"{p} returned a non-JSON body") from e

    if p == "anthropic":
        content = data.get("content") or [{}]
        text = (content[0] or {}).get("text") or ""
    elif p == "google":
        candidates = data.get("candidates") or [{}]
        parts = ((candidates[0] or {}).get("content") or {}).get("parts") or [{}]
        text = (parts[0] or {}).get("text") or ""
    else:
        text = _chat_content(data)

    if not text:
        raise ProviderError(f"{p} returned an empty answer")

    return text
