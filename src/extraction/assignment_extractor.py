from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from extraction.context_resolver import MessageContext
from extraction.prompts import build_classification_prompt
from llm.llm_client import (
    AllModelsFailedError,
    LLMClient,
    ModelTier,
    TierExhaustedError,
    TierTable,
)
from llm.parsing import parse_classification
from llm.schemas import Classification, Unrecognized
from marbot.models import Assignment, Course
from marbot.timeutil import Clock, truncate_for_log, wib_now

logger = logging.getLogger(__name__)


class AssignmentExtractor:
    """Classifies a chat message (and optional image) into an assignment verdict.

    Tier order: vision (only with an image), text, then the fallback
    provider. An image the vision models call unrecognized gets a second,
    text-only opinion before the verdict is accepted.
    """

    def __init__(self, llm: LLMClient, tiers: TierTable, clock: Clock = wib_now):
        self.llm = llm
        self.tiers = tiers
        self.clock = clock

    def extract(
        self,
        text: str,
        courses: Sequence[Course],
        active_assignments: Sequence[Assignment],
        image_base64: Optional[str] = None,
        context: Optional[MessageContext] = None,
    ) -> Classification:
        prompt = build_classification_prompt(text, courses, active_assignments, self.clock(), context)
        logger.info(f"Extracting from: {truncate_for_log(text)} (image={image_base64 is not None})")

        exhausted: List[str] = []
        vision_said_unrecognized = False

        if image_base64 is not None:
            verdict = self._try(self.tiers.vision, prompt, exhausted, image_base64=image_base64)
            if verdict is not None and not isinstance(verdict, Unrecognized):
                return verdict
            if verdict is not None:
                logger.info("Vision tier found nothing; asking the text tier")
                vision_said_unrecognized = True

        verdict = self._try(self.tiers.text, prompt, exhausted)
        if verdict is not None:
            return verdict

        verdict = self._try(self.tiers.fallback, prompt, exhausted)
        if verdict is not None:
            return verdict

        if vision_said_unrecognized:
            logger.warning("Text tiers failed after an unrecognized image verdict; keeping it")
            return Unrecognized()

        logger.error(f"All models failed ({', '.join(exhausted)}) for: {truncate_for_log(text)}")
        raise AllModelsFailedError(f"tiers exhausted: {', '.join(exhausted)}")

    def _try(
        self,
        tier: ModelTier,
        prompt: str,
        exhausted: List[str],
        image_base64: Optional[str] = None,
    ) -> Optional[Classification]:
        try:
            return self.llm.run_tier(tier, prompt, parse_classification, image_base64=image_base64)
        except TierExhaustedError as e:
            logger.warning(str(e))
            exhausted.append(tier.name)
            return None
