"""LLM and embedding clients implemented with LiteLLM."""

import asyncio
from typing import Any, AsyncIterator, Callable, List, Optional, Sequence, Union

import structlog

from corpusflow.config import get_llm_settings
from corpusflow.llm.interface import EmbeddingClientInterface, LLMClientInterface
from corpusflow.types import LLMResponse

logger = structlog.get_logger()


class LiteLLMClient(LLMClientInterface):
    """Chat client using LiteLLM for unified provider support.

    Failures are raised as-is; throttle handling is left to the retry
    orchestrator so a call is never retried at two layers.

    Configuration comes from ``LLM_*`` settings or the provider's own
    environment variables (``OPENAI_API_KEY``, ``AZURE_API_KEY``, ...).
    """

    def __init__(
        self,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
    ) -> None:
        """Initialize the LiteLLM client.

        Args:
            model: Model name (e.g. 'gpt-4.1-mini', 'azure/my-deployment')
            api_base: Custom API base URL
            api_key: API key
            timeout: Request timeout in seconds
        """
        settings = get_llm_settings()

        self.model = model or settings.chat_model
        self.api_base = api_base or settings.api_base
        self.api_key = api_key or settings.api_key
        self.timeout = timeout or settings.timeout

        logger.info(
            "litellm_client_initialized",
            model=self.model,
            api_base=self.api_base,
        )

    def _build_messages(self, prompt: str, system_prompt: Optional[str]) -> List[dict]:
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})
        return messages

    def _request_kwargs(self) -> dict:
        kwargs: dict = {"timeout": self.timeout}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key
        return kwargs

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a completion using LiteLLM."""
        from litellm import acompletion

        response = await acompletion(
            model=self.model,
            messages=self._build_messages(prompt, system_prompt),
            temperature=temperature,
            max_tokens=max_tokens,
            **self._request_kwargs(),
            **kwargs,
        )

        content = response.choices[0].message.content or ""

        usage = {}
        if getattr(response, "usage", None):
            usage = {
                "prompt_tokens": response.usage.prompt_tokens,
                "completion_tokens": response.usage.completion_tokens,
                "total_tokens": response.usage.total_tokens,
            }

        logger.debug(
            "llm_generation_complete",
            model=self.model,
            tokens_used=usage.get("total_tokens", 0),
        )

        return LLMResponse(
            content=content,
            model=self.model,
            usage=usage,
            finish_reason=response.choices[0].finish_reason,
        )

    async def generate_stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Generate a streaming completion using LiteLLM."""
        from litellm import acompletion

        response = await acompletion(
            model=self.model,
            messages=self._build_messages(prompt, system_prompt),
            temperature=temperature,
            max_tokens=max_tokens,
            stream=True,
            **self._request_kwargs(),
            **kwargs,
        )

        async for chunk in response:
            if chunk.choices and chunk.choices[0].delta:
                content = chunk.choices[0].delta.content
                if content:
                    yield content

    def get_model_name(self) -> str:
        """Get the model name."""
        return self.model


class LiteLLMEmbeddingClient(EmbeddingClientInterface):
    """Embedding client using LiteLLM."""

    def __init__(
        self,
        model: Optional[str] = None,
        api_base: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[int] = None,
        dimensions: Optional[int] = None,
    ) -> None:
        settings = get_llm_settings()

        self.model = model or settings.embedding_model
        self.api_base = api_base or settings.api_base
        self.api_key = api_key or settings.api_key
        self.timeout = timeout or settings.timeout
        self.dimensions = dimensions or settings.embedding_dimensions

        logger.info(
            "embedding_client_initialized",
            model=self.model,
            dimensions=self.dimensions,
        )

    async def embed(self, text: str) -> List[float]:
        """Embed a single text using LiteLLM."""
        from litellm import aembedding

        kwargs: dict = {"timeout": self.timeout}
        if self.api_base:
            kwargs["api_base"] = self.api_base
        if self.api_key:
            kwargs["api_key"] = self.api_key
        if self.dimensions:
            kwargs["dimensions"] = self.dimensions

        response = await aembedding(model=self.model, input=[text], **kwargs)

        item = response.data[0]
        vector = item["embedding"] if isinstance(item, dict) else item.embedding
        return [float(v) for v in vector]

    def get_model_name(self) -> str:
        return self.model


ScriptedReply = Union[str, Exception]


class MockLLMClient(LLMClientInterface):
    """Mock LLM client for testing.

    Replies are taken from ``responses`` in order (the last one repeats).
    An ``Exception`` entry is raised instead of returned. A callable
    ``responder`` can build replies from the prompt instead.
    """

    def __init__(
        self,
        responses: Optional[Sequence[ScriptedReply]] = None,
        responder: Optional[Callable[[str], str]] = None,
        delay: float = 0.0,
        stream_piece_size: int = 16,
    ) -> None:
        """Initialize mock client.

        Args:
            responses: Scripted replies
            responder: Builds a reply from the prompt when no script is given
            delay: Artificial delay in seconds to simulate network
            stream_piece_size: Characters per streamed piece
        """
        self.responses = list(responses or [])
        self.responder = responder
        self.delay = delay
        self.stream_piece_size = stream_piece_size
        self.call_count = 0
        self.prompts: List[str] = []
        self.system_prompts: List[Optional[str]] = []

    def _next_reply(self, prompt: str, system_prompt: Optional[str]) -> str:
        self.call_count += 1
        self.prompts.append(prompt)
        self.system_prompts.append(system_prompt)

        if self.responses:
            index = min(self.call_count - 1, len(self.responses) - 1)
            reply = self.responses[index]
        elif self.responder is not None:
            reply = self.responder(prompt)
        else:
            reply = prompt

        if isinstance(reply, Exception):
            raise reply
        return reply

    async def generate(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """Generate a mock completion."""
        await asyncio.sleep(self.delay)
        content = self._next_reply(prompt, system_prompt)
        return LLMResponse(
            content=content,
            model="mock-model",
            usage={"prompt_tokens": len(prompt), "completion_tokens": len(content)},
        )

    async def generate_stream(
        self,
        prompt: str,
        system_prompt: Optional[str] = None,
        temperature: float = 0.0,
        max_tokens: Optional[int] = None,
        **kwargs: Any,
    ) -> AsyncIterator[str]:
        """Generate a mock streaming completion."""
        content = self._next_reply(prompt, system_prompt)
        size = max(1, self.stream_piece_size)
        for start in range(0, len(content), size):
            await asyncio.sleep(self.delay)
            yield content[start:start + size]

    def get_model_name(self) -> str:
        return "mock-model"


class MockEmbeddingClient(EmbeddingClientInterface):
    """Deterministic embedding client for testing.

    Entries in ``failures`` are raised on the first calls, in order.
    """

    def __init__(
        self,
        dimensions: int = 8,
        failures: Optional[Sequence[Exception]] = None,
    ) -> None:
        self.dimensions = dimensions
        self.failures = list(failures or [])
        self.call_count = 0
        self.texts: List[str] = []

    async def embed(self, text: str) -> List[float]:
        self.call_count += 1
        if self.failures:
            raise self.failures.pop(0)
        self.texts.append(text)
        seed = sum(ord(c) for c in text) or 1
        return [((seed * (i + 1)) % 97) / 97.0 for i in range(self.dimensions)]

    def get_model_name(self) -> str:
        return "mock-embedding"
