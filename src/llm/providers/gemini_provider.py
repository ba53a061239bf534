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


class GeminiProvider(LLMProvider):
    name = "gemini"

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None, timeout_s: float = 60.0):
        self.api_key = (api_key if api_key is not None else os.getenv("GEMINI_API_KEY", "")).strip()
        self.base_url = (
            base_url or os.getenv("GEMINI_BASE_URL", "https://generativelanguage.googleapis.com/v1beta")
        ).strip()
        self.timeout_s = timeout_s

        if not self.api_key:
            raise RuntimeError("GEMINI_API_KEY is missing")

    def generate(
        self,
        *,
        system: str,
        user: str,
        model: str,
        image_base64: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        url = f"{self.base_url}/models/{model}:generateContent"
        parts = [{"text": user}]
        if image_base64:
            parts.append({"inline_data": {"mime_type": "image/jpeg", "data": image_base64}})

        payload = {
            "system_instruction": {"parts": [{"text": system}]},
            "contents": [{"parts": parts}],
            "generationConfig": {
                "temperature": DEFAULT_TEMPERATURE,
                "maxOutputTokens": max_tokens,
                "responseMimeType": "application/json",
            },
        }

        try:
            with httpx.Client(timeout=self.timeout_s) as client:
                r = client.post(url, params={"key": self.api_key}, json=payload)
        except httpx.HTTPError as e:
            raise ProviderError(f"request failed: {e}") from e

        if r.status_code != 200:
            raise ProviderError(
                f"{model} returned {r.status_code}: {r.text[:120]}",
                status_code=r.status_code,
            )

        try:
            data = r.json()
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (ValueError, KeyError, IndexError, TypeError) as e:
            raise ProviderError(f"{model} returned an empty response") from e
