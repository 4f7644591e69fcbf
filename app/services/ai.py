"""AI-written page descriptions.

Claude is called through the Anthropic SDK; Gemini through its REST
``generateContent`` endpoint; every other provider speaks the OpenAI
``/chat/completions`` protocol.
"""

import logging
from typing import Any, Dict, List, Literal, NamedTuple, Optional, get_args

import httpx
from anthropic import AsyncAnthropic

from app.models.page import PageRecord

logger = logging.getLogger(__name__)

AiProvider = Literal["claude", "openai", "gemini", "perplexity", "grok", "deepseek"]
AI_PROVIDERS: tuple = get_args(AiProvider)

_TIMEOUT = 30
_MAX_TOKENS = 80
_EXCERPT_LENGTH = 500

_GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class _ProviderConfig(NamedTuple):
    env_var: str
    model: str
    base_url: Optional[str] = None


_PROVIDERS: Dict[str, _ProviderConfig] = {
    "claude": _ProviderConfig("ANTHROPIC_API_KEY", "claude-haiku-4-5-20251001"),
    "openai": _ProviderConfig("OPENAI_API_KEY", "gpt-4o-mini", "https://api.openai.com/v1"),
    "gemini": _ProviderConfig("GEMINI_API_KEY", "gemini-2.0-flash"),
    "perplexity": _ProviderConfig("PERPLEXITY_API_KEY", "sonar", "https://api.perplexity.ai"),
    "grok": _ProviderConfig("XAI_API_KEY", "grok-3-mini", "https://api.x.ai/v1"),
    "deepseek": _ProviderConfig("DEEPSEEK_API_KEY", "deepseek-chat", "https://api.deepseek.com/v1"),
}


def _provider_config(provider: str) -> _ProviderConfig:
    try:
        return _PROVIDERS[provider]
    except KeyError:
        raise ValueError(
            f"Unknown AI provider '{provider}'. Choose from: {', '.join(AI_PROVIDERS)}"
        ) from None


def get_provider_env_var(provider: str) -> str:
    """Name of the environment variable holding *provider*'s API key."""
    return _provider_config(provider).env_var


def build_prompt(page: PageRecord) -> str:
    return (
        "Summarize this web page in one concise sentence (under 20 words) "
        "for an llm.txt index file.\n\n"
        f"Title: {page.title}\n"
        f"H1: {page.h1}\n"
        f"Meta description: {page.description}\n"
        f"Content excerpt: {page.content[:_EXCERPT_LENGTH]}\n\n"
        "Respond with only the one-line description."
    )


async def _post_json(url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
    async with httpx.AsyncClient(timeout=_TIMEOUT) as client:
        resp = await client.post(url, json=payload, headers=headers)
        resp.raise_for_status()
        return resp.json()


async def _call_claude(prompt: str, api_key: str, model: str) -> str:
    async with AsyncAnthropic(api_key=api_key, timeout=_TIMEOUT) as client:
        message = await client.messages.create(
            model=model,
            max_tokens=_MAX_TOKENS,
            messages=[{"role": "user", "content": prompt}],
        )
    block = message.content[0] if message.content else None
    return block.text.strip() if block is not None and block.type == "text" else ""


async def _call_openai_compatible(prompt: str, api_key: str, base_url: str, model: str) -> str:
    data = await _post_json(
        f"{base_url}/chat/completions",
        {"model": model, "max_tokens": _MAX_TOKENS, "messages": [{"role": "user", "content": prompt}]},
        {"Authorization": f"Bearer {api_key}"},
    )
    choices = data.get("choices") or [{}]
    return ((choices[0].get("message") or {}).get("content") or "").strip()


async def _call_gemini(prompt: str, api_key: str, model: str) -> str:
    data = await _post_json(
        _GEMINI_URL.format(model=model),
        {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"maxOutputTokens": _MAX_TOKENS},
        },
        {"x-goog-api-key": api_key},
    )
    candidates = data.get("candidates") or [{}]
    parts = (candidates[0].get("content") or {}).get("parts") or [{}]
    return (parts[0].get("text") or "").strip()


async def describe_page(page: PageRecord, provider: str, api_key: str) -> str:
    """Ask *provider* for a one-line description of *page*."""
    config = _provider_config(provider)
    prompt = build_prompt(page)
    if provider == "claude":
        return await _call_claude(prompt, api_key, config.model)
    if provider == "gemini":
        return await _call_gemini(prompt, api_key, config.model)
    return await _call_openai_compatible(prompt, api_key, config.base_url, config.model)


async def generate_descriptions(
    pages: List[PageRecord], provider: str, api_key: str
) -> List[PageRecord]:
    """Replace each page's description with an AI-written one.

    Pages are processed one at a time.  A page keeps its original
    description when the provider fails or answers with nothing.
    """
    _provider_config(provider)

    results: List[PageRecord] = []
    for page in pages:
        try:
            description = await describe_page(page, provider, api_key)
        except Exception as exc:
            logger.warning("AI description failed for %s (%s): %s", page.url, provider, exc)
            results.append(page)
            continue
        results.append(page.model_copy(update={"description": description}) if description else page)
    return results
