from __future__ import annotations
from abc import ABC, abstractmethod
from typing import Optional

DEFAULT_TEMPERATURE = 0.2
DEFAULT_MAX_TOKENS = 4096


class ProviderError(Exception):
    """A model call that did not produce a usable HTTP answer."""

    def __init__(self, message: str, *, status_code: Optional[int] = None, rate_limited: bool = False):
        super().__init__(message)
        self.status_code = status_code
        self.rate_limited = rate_limited or status_code == 429


class LLMProvider(ABC):
    name: str = "provider"

    @abstractmethod
    def generate(
        self,
        *,
        system: str,
        user: str,
        model: str,
        image_base64: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        """
        Must return the model output as TEXT (JSON is parsed/validated by the caller).
        Raises ProviderError on transport failures and non-success statuses.
        """
        raise NotImplementedError
