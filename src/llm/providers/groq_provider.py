from __future__ import annotations
import os
from typing import Optional

import httpx

from .base import (
    DEFAULT_MAX_TOKENS,
    DEFAULT_TEMPERATURE,
    LLMProvider,
    ProviderError,
)


class GroqProvider(LLMProvider):
    """OpenAI-compatible chat completions endpoint (Groq by default)."""

    name = "groq"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout_s: float = 30.0):
        self.api_key = (api_key if api_key is not None else os.getenv("GROQ_API_KEY", "")).strip()
        self.base_url = (base_url or os.getenv("GROQ_BASE_URL", "https://api.groq.com/openai/v1")).strip()
        self.timeout_s = timeout_s

        if not self.api_key:
            raise RuntimeError("GROQ_API_KEY is missing")

    def generate(
        self,
        *,
        system: str,
        user: str,
        model: str,
        image_base64: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        url = f"{self.base_url}/chat/completions"
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        if image_base64:
            user_content = [
                {"type": "text", "text": user},
                {
                    "type": "image_url",
                    "image_url": {"url": f"data:image/jpeg;base64,{image_base64}"},
                },
            ]
        else:
            user_content = user

        payload = {
            "model": model,
            "messages": [
                {"role": "system", "content": system},
                {"role": "user", "content": user_content},
            ],
            "temperature": DEFAULT_TEMPERATURE,
            "max_tokens": max_tokens,
            "response_format": {"type": "json_object"},
        }

        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.post(url, headers=headers, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"request failed: {e}") from e

        if r.status_code != 200:
            raise ProviderError(
                f"{model} returned {r.status_code}: {r.text[:120]}",
                status_code=r.status_code,
            )

        try:
            data = r.json()
            return data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{model} returned an empty response") from e
