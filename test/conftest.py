import json
from datetime import datetime

import pytest

from llm.llm_client import LLMClient, ModelTier, TierTable
from llm.providers.mock_provider import MockProvider
from marbot.models import Course
from marbot.timeutil import WIB
from storage.memory_store import InMemoryAssignmentStore, default_courses

# Wednesday
NOW = datetime(2026, 1, 14, 10, 0, tzinfo=WIB)


def unrecognized() -> str:
    return json.dumps({"type": "unrecognized"})


def assignment_info(**fields) -> str:
    body = {
        "type": "assignment_info",
        "course_name": "Pemrograman",
        "title": "LKP 14",
        "deadline": "2026-01-20 23:59",
        "description": "Programming lab assignment 14",
        "parallel_code": "k1",
    }
    body.update(fields)
    return json.dumps(body)


@pytest.fixture
def clock():
    return lambda: NOW


@pytest.fixture
def tiers():
    return TierTable(
        vision=ModelTier("vision", "groq", ("vision-a", "vision-b")),
        text=ModelTier("text", "groq", ("text-a", "text-b")),
        fallback=ModelTier("fallback", "gemini", ("gemini-a",)),
        matching=ModelTier("matching", "gemini", ("gemini-a",)),
        context=ModelTier("context", "groq", ("context-a",), max_tokens=800),
    )


@pytest.fixture
def fake_provider_factory():
    def _make(script=None, default=None):
        return MockProvider(script=script, default=default)
    return _make


@pytest.fixture
def llm_factory():
    def _make(provider):
        attempts = []
        client = LLMClient(
            {"groq": provider, "gemini": provider},
            on_attempt=lambda tier, model, outcome: attempts.append((tier, model, outcome)),
        )
        client.attempts = attempts
        return client
    return _make


@pytest.fixture
def courses():
    return default_courses()


@pytest.fixture
def store(courses):
    return InMemoryAssignmentStore(courses)


def course_named(courses, name) -> Course:
    return next(c for c in courses if c.name == name)
