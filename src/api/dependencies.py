import logging
import os
from typing import Dict, Optional

from api import state
from api.commands import CommandHandler
from api.metrics import record_llm_attempt
from api.pipeline import MessagePipeline
from clarification.engine import ClarificationEngine
from extraction.assignment_extractor import AssignmentExtractor
from extraction.context_resolver import ContextResolver
from integration.waha_client import WahaClient
from llm.llm_client import LLMClient, TierTable
from llm.providers.base import LLMProvider
from llm.providers.gemini_provider import GeminiProvider
from llm.providers.groq_provider import GroqProvider
from llm.providers.mock_provider import MockProvider
from matching.update_matcher import UpdateMatcher
from scheduling.schedule_oracle import ScheduleLoadError, ScheduleOracle
from storage.assignment_store import AssignmentStore

logger = logging.getLogger(__name__)

# Config
LLM_PROVIDER = os.getenv("LLM_PROVIDER", "").strip().lower()


def build_providers(mode: Optional[str] = None) -> Dict[str, LLMProvider]:
    """Provider registry keyed by the names tiers refer to."""
    mode = mode or LLM_PROVIDER
    if not mode:
        has_keys = os.getenv("GROQ_API_KEY") or os.getenv("GEMINI_API_KEY")
        mode = "live" if has_keys else "mock"

    if mode == "mock":
        logger.warning("Using mock LLM provider; extraction output is canned")
        mock = MockProvider()
        return {"groq": mock, "gemini": mock}

    providers: Dict[str, LLMProvider] = {}
    if os.getenv("GROQ_API_KEY"):
        providers["groq"] = GroqProvider()
    if os.getenv("GEMINI_API_KEY"):
        providers["gemini"] = GeminiProvider()
    if not providers:
        logger.error("LLM_PROVIDER=live but neither GROQ_API_KEY nor GEMINI_API_KEY is set")
    return providers


def load_oracle() -> Optional[ScheduleOracle]:
    try:
        return ScheduleOracle.load_from_file()
    except ScheduleLoadError as e:
        logger.warning(f"Timetable unavailable, next-meeting hints disabled: {e}")
        return None


def build_pipeline(
    store: AssignmentStore,
    providers: Optional[Dict[str, LLMProvider]] = None,
    tiers: Optional[TierTable] = None,
    oracle: Optional[ScheduleOracle] = None,
) -> MessagePipeline:
    tiers = tiers or TierTable.from_env()
    llm = LLMClient(providers if providers is not None else build_providers(), on_attempt=record_llm_attempt)

    return MessagePipeline(
        store=store,
        extractor=AssignmentExtractor(llm, tiers),
        matcher=UpdateMatcher(llm, tiers.matching),
        clarifier=ClarificationEngine(),
        commands=CommandHandler(store),
        resolver=ContextResolver(llm, tiers.context, oracle),
    )


def get_pipeline() -> Optional[MessagePipeline]:
    return state.pipeline


def get_waha_client() -> Optional[WahaClient]:
    return state.waha_client


def get_store() -> Optional[AssignmentStore]:
    return state.store
