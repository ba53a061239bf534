from prometheus_client import Counter, Histogram, REGISTRY


# we check if they are already registered to avoid errors during hot reloads or test runs
def get_or_create_metric(name, documentation, metric_type, **kwargs):
    try:
        return metric_type(name, documentation, **kwargs)
    except ValueError:
        # If it already exists, retrieve it from the registry
        return REGISTRY._names_to_collectors[name]


MESSAGES_TOTAL = get_or_create_metric(
    "marbot_messages_total",
    "Inbound messages by how they were handled",
    Counter,
    labelnames=["kind"],
)

LLM_ATTEMPTS_TOTAL = get_or_create_metric(
    "marbot_llm_attempts_total",
    "Model calls by tier and outcome",
    Counter,
    labelnames=["tier", "outcome"],
)

CLASSIFICATIONS_TOTAL = get_or_create_metric(
    "marbot_classifications_total",
    "Extraction verdicts by type",
    Counter,
    labelnames=["type"],
)

CLARIFICATIONS_TOTAL = get_or_create_metric(
    "marbot_clarifications_total",
    "Clarification replies by outcome",
    Counter,
    labelnames=["outcome"],
)

PIPELINE_LATENCY_SECONDS = get_or_create_metric(
    "marbot_pipeline_latency_seconds",
    "Time spent handling one inbound message",
    Histogram,
    labelnames=["kind"],
)


def record_llm_attempt(tier: str, model: str, outcome: str) -> None:
    LLM_ATTEMPTS_TOTAL.labels(tier=tier, outcome=outcome).inc()
