"""Token counting and encoding with tiktoken."""

from typing import List, Sequence

import structlog
import tiktoken

logger = structlog.get_logger()

DEFAULT_ENCODING = "o200k_base"


class TokenCounter:
    """Encodes, decodes and counts tokens for budgeting.

    Example:
        ```python
        counter = TokenCounter()
        tokens = counter.encode("Hello world")
        assert counter.decode(tokens) == "Hello world"
        ```
    """

    def __init__(self, encoding_name: str = DEFAULT_ENCODING) -> None:
        """Load the encoding once for the lifetime of the counter.

        Args:
            encoding_name: tiktoken encoding name
        """
        self.encoding_name = encoding_name
        self._encoding = tiktoken.get_encoding(encoding_name)

    @classmethod
    def for_model(cls, model: str) -> "TokenCounter":
        """Build a counter using the encoding tiktoken associates with ``model``.

        Provider prefixes such as ``azure/`` are stripped first. Unknown
        models fall back to ``o200k_base``.
        """
        name = model.split("/")[-1]
        try:
            encoding = tiktoken.encoding_for_model(name)
        except KeyError:
            logger.debug("tokenizer_model_unknown", model=model, fallback=DEFAULT_ENCODING)
            return cls(DEFAULT_ENCODING)
        return cls(encoding.name)

    def encode(self, text: str) -> List[int]:
        # Special-token text in documents is treated as plain text
        return self._encoding.encode(text, disallowed_special=())

    def decode(self, tokens: Sequence[int]) -> str:
        return self._encoding.decode(list(tokens))

    def count(self, text: str) -> int:
        """Number of tokens in ``text``."""
        if not text:
            return 0
        return len(self.encode(text))
