from __future__ import annotations
import json
from typing import Dict, List, Optional, Union

from llm.providers.base import DEFAULT_MAX_TOKENS, LLMProvider, ProviderError

Outcome = Union[str, Exception]


class MockProvider(LLMProvider):
    """Offline provider.

    Each model can be given a queue of canned outcomes (a response string or an
    exception to raise). Models without a script fall back to dummy JSON chosen
    from the prompt content, which keeps the bot runnable without API keys.
    """

    name = "mock"

    def __init__(self, script: Optional[Dict[str, List[Outcome]]] = None, default: Optional[str] = None):
        self.script: Dict[str, List[Outcome]] = {m: list(v) for m, v in (script or {}).items()}
        self.default = default
        self.calls: List[dict] = []

    def generate(
        self,
        *,
        system: str,
        user: str,
        model: str,
        image_base64: Optional[str] = None,
        max_tokens: int = DEFAULT_MAX_TOKENS,
    ) -> str:
        self.calls.append({"model": model, "user": user, "has_image": image_base64 is not None})

        queue = self.script.get(model)
        if queue:
            outcome = queue.pop(0)
            if isinstance(outcome, Exception):
                raise outcome
            return outcome
        if self.default is not None:
            return self.default
        return self._canned(user)

    @staticmethod
    def rate_limited(model: str = "") -> ProviderError:
        return ProviderError(f"{model} rate limited".strip(), status_code=429)

    def _canned(self, user: str) -> str:
        if "Match this update" in user:
            return json.dumps({"assignment_id": None, "confidence": "low", "reason": "mock provider"})

        if "Quick analysis" in user:
            return json.dumps({
                "parallel_code": None,
                "parallel_confidence": 0.0,
                "parallel_source": "unknown",
                "deadline_type": "unknown",
                "course_hints": [],
            })

        # Extraction prompt: only messages that obviously announce work are picked up
        lower_user = user.lower()
        if "message: \"" in lower_user and ("tugas" in lower_user.split("message: \"", 1)[1][:200]):
            return json.dumps({
                "type": "assignment_info",
                "course_name": None,
                "title": "Tugas",
                "deadline": None,
                "description": "",
                "parallel_code": None,
            })
        return json.dumps({"type": "unrecognized"})
