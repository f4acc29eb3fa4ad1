"""Remote model access: clients, throttle-aware retry and rate limiting."""

from corpusflow.llm.client import (
    LiteLLMClient,
    LiteLLMEmbeddingClient,
    MockEmbeddingClient,
    MockLLMClient,
)
from corpusflow.llm.interface import EmbeddingClientInterface, LLMClientInterface
from corpusflow.llm.outcomes import (
    CallOutcome,
    Fatal,
    Success,
    Throttled,
    classify_exception,
    guard,
)
from corpusflow.llm.rate_limiter import TokenRateLimiter, create_rate_limiter
from corpusflow.llm.retry import (
    RetryOrchestrator,
    RetryPolicy,
    RetryState,
    execute_with_retry,
)

__all__ = [
    # Clients
    "LLMClientInterface",
    "EmbeddingClientInterface",
    "LiteLLMClient",
    "LiteLLMEmbeddingClient",
    "MockLLMClient",
    "MockEmbeddingClient",
    # Outcomes
    "CallOutcome",
    "Success",
    "Throttled",
    "Fatal",
    "classify_exception",
    "guard",
    # Retry
    "RetryOrchestrator",
    "RetryPolicy",
    "RetryState",
    "execute_with_retry",
    # Rate limiting
    "TokenRateLimiter",
    "create_rate_limiter",
]
