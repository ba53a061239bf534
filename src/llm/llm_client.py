import logging
import os
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Mapping, Optional, Tuple, TypeVar

from llm.parsing import ResponseFormatError
from llm.providers.base import DEFAULT_MAX_TOKENS, LLMProvider, ProviderError

logger = logging.getLogger(__name__)

T = TypeVar("T")

SYSTEM_PROMPT = (
    "You are a careful bilingual (Indonesian/English) academic assistant. "
    "Return ONLY a single valid JSON object, no markdown, no explanations."
)

# Ordered preference lists; earlier entries are tried first.
GROQ_VISION_MODELS = (
    "meta-llama/llama-4-scout-17b-16e-instruct",
    "meta-llama/llama-4-maverick-17b-128e-instruct",
)
GROQ_TEXT_MODELS = (
    "openai/gpt-oss-120b",
    "qwen/qwen3-32b",
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
)
GROQ_CONTEXT_MODELS = (
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
)
GEMINI_MODELS = (
    "gemini-2.5-flash",
    "gemini-2.5-flash-lite",
    "gemini-2.0-flash",
)

CONTEXT_MAX_TOKENS = 800


def _models_from_env(var: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(var, "").strip()
    if not raw:
        return default
    return tuple(m.strip() for m in raw.split(",") if m.strip())


@dataclass(frozen=True)
class ModelTier:
    """An ordered group of interchangeable models on one provider."""

    name: str
    provider: str
    models: Tuple[str, ...]
    max_tokens: int = DEFAULT_MAX_TOKENS


@dataclass(frozen=True)
class TierTable:
    vision: ModelTier
    text: ModelTier
    fallback: ModelTier
    matching: ModelTier
    context: ModelTier

    @classmethod
    def from_env(cls) -> "TierTable":
        gemini = _models_from_env("GEMINI_MODELS", GEMINI_MODELS)
        return cls(
            vision=ModelTier("vision", "groq", _models_from_env("GROQ_VISION_MODELS", GROQ_VISION_MODELS)),
            text=ModelTier("text", "groq", _models_from_env("GROQ_TEXT_MODELS", GROQ_TEXT_MODELS)),
            fallback=ModelTier("fallback", "gemini", gemini),
            matching=ModelTier("matching", "gemini", gemini),
            context=ModelTier(
                "context",
                "groq",
                _models_from_env("GROQ_CONTEXT_MODELS", GROQ_CONTEXT_MODELS),
                max_tokens=CONTEXT_MAX_TOKENS,
            ),
        )


class AttemptState(str, Enum):
    PENDING = "pending"
    SUCCESS = "success"
    RETRY = "retry"
    EXHAUSTED = "exhausted"


@dataclass
class AttemptRecord:
    model: str
    outcome: str
    detail: str = ""


@dataclass
class TierRun:
    """Walks one tier's model list.

    PENDING -> SUCCESS
    PENDING -> RETRY (next model) -> ... -> EXHAUSTED
    """

    tier: ModelTier
    state: AttemptState = AttemptState.PENDING
    index: int = 0
    attempts: List[AttemptRecord] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.tier.models:
            self.state = AttemptState.EXHAUSTED

    @property
    def done(self) -> bool:
        return self.state in (AttemptState.SUCCESS, AttemptState.EXHAUSTED)

    @property
    def model(self) -> Optional[str]:
        if self.done:
            return None
        return self.tier.models[self.index]

    def succeed(self) -> AttemptState:
        self.attempts.append(AttemptRecord(self.tier.models[self.index], "success"))
        self.state = AttemptState.SUCCESS
        return self.state

    def fail(self, outcome: str, detail: str = "") -> AttemptState:
        self.attempts.append(AttemptRecord(self.tier.models[self.index], outcome, detail))
        self.index += 1
        if self.index < len(self.tier.models):
            self.state = AttemptState.RETRY
        else:
            self.state = AttemptState.EXHAUSTED
        return self.state


class TierExhaustedError(Exception):
    def __init__(self, tier: str, attempts: List[AttemptRecord]):
        super().__init__(f"all models in tier '{tier}' failed ({len(attempts)} attempts)")
        self.tier = tier
        self.attempts = attempts


class AllModelsFailedError(Exception):
    """Every applicable tier was exhausted; the message stays unclassified."""


AttemptObserver = Callable[[str, str, str], None]


class LLMClient:
    """Runs prompts against ordered model tiers with in-tier fallover."""

    def __init__(
        self,
        providers: Mapping[str, LLMProvider],
        on_attempt: Optional[AttemptObserver] = None,
    ):
        self.providers: Dict[str, LLMProvider] = dict(providers)
        self.on_attempt = on_attempt

    def _notify(self, tier: ModelTier, model: str, outcome: str) -> None:
        if self.on_attempt is None:
            return
        try:
            self.on_attempt(tier.name, model, outcome)
        except Exception:
            logger.debug("attempt observer failed", exc_info=True)

    def run_tier(
        self,
        tier: ModelTier,
        prompt: str,
        parse: Callable[[str], T],
        *,
        image_base64: Optional[str] = None,
    ) -> T:
        """Try each model of the tier in order until one answer parses.

        Transport errors, rate limits, other non-success statuses and
        unusable bodies (ResponseFormatError from `parse`) all move on to the
        next model. Raises TierExhaustedError when the list runs out.
        """
        provider = self.providers.get(tier.provider)
        run = TierRun(tier)
        if provider is None:
            logger.warning(f"No provider configured for tier '{tier.name}' ({tier.provider})")
            raise TierExhaustedError(tier.name, run.attempts)

        while not run.done:
            model = run.model
            position = f"{run.index + 1}/{len(tier.models)}"
            logger.info(f"Model {model} (tier {tier.name} {position})")
            try:
                raw = provider.generate(
                    system=SYSTEM_PROMPT,
                    user=prompt,
                    model=model,
                    image_base64=image_base64,
                    max_tokens=tier.max_tokens,
                )
                result = parse(raw)
            except ProviderError as e:
                outcome = "rate_limited" if e.rate_limited else "error"
                logger.warning(f"Model {model} failed ({outcome}): {e}")
                run.fail(outcome, str(e))
                self._notify(tier, model, outcome)
                continue
            except ResponseFormatError as e:
                logger.warning(f"Model {model} returned an unusable body: {e}")
                run.fail("bad_response", str(e))
                self._notify(tier, model, "bad_response")
                continue

            run.succeed()
            self._notify(tier, model, "success")
            return result

        raise TierExhaustedError(tier.name, run.attempts)
