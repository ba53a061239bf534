from __future__ import annotations

import logging
from typing import Optional, Sequence
from uuid import UUID

from extraction.prompts import build_matching_prompt
from llm.llm_client import AllModelsFailedError, LLMClient, ModelTier, TierExhaustedError
from llm.parsing import parse_match_result
from llm.schemas import AssignmentUpdate
from marbot.models import Assignment
from marbot.timeutil import Clock, truncate_for_log, wib_now

logger = logging.getLogger(__name__)


class UpdateMatcher:
    """Finds which stored assignment an update message is talking about.

    Only a high-confidence answer naming one of the candidates counts;
    everything else means "don't touch anything".
    """

    def __init__(self, llm: LLMClient, tier: ModelTier, clock: Clock = wib_now):
        self.llm = llm
        self.tier = tier
        self.clock = clock

    def match(
        self,
        update: AssignmentUpdate,
        candidates: Sequence[Assignment],
        message_text: Optional[str] = None,
    ) -> Optional[UUID]:
        if not candidates:
            logger.info("No candidates to match the update against")
            return None

        prompt = build_matching_prompt(
            update.changes,
            update.reference_keywords,
            update.parallel_code,
            candidates,
            self.clock(),
            message_text=message_text,
        )
        logger.info(
            f"Matching update '{truncate_for_log(update.changes)}' against {len(candidates)} candidates"
        )
        try:
            matched = self.llm.run_tier(self.tier, prompt, parse_match_result)
        except TierExhaustedError as e:
            logger.error(f"Update matching failed: {e}")
            raise AllModelsFailedError(str(e)) from e

        if matched is None:
            return None
        if matched not in {c.id for c in candidates}:
            logger.warning(f"Matcher returned id {matched} that is not a candidate")
            return None
        return matched
