"""Overlapping token panels for documents larger than one chunking window."""

import math
from typing import Callable, List, Sequence, Tuple

from corpusflow.types import TokenPanel


def _stride(target: int, overlap: int) -> int:
    # A non-positive stride would never advance
    return max(1, target - overlap)


def panel_ranges(n: int, target: int, overlap: int) -> List[Tuple[int, int]]:
    """
    Compute token ranges of overlapping panels.

    Panel ``i`` starts at ``i * (target - overlap)`` and ends at
    ``min(start + target, n)``. The last panel always ends at ``n``.

    Args:
        n: Number of tokens in the document
        target: Tokens per panel
        overlap: Tokens shared by consecutive panels

    Returns:
        List of half-open ``(start, end)`` ranges
    """
    if n <= 0:
        return []

    target = max(1, target)
    stride = _stride(target, overlap)

    ranges = []
    start = 0
    while True:
        end = min(start + target, n)
        ranges.append((start, end))
        if end >= n:
            break
        start += stride

    return ranges


def expected_panel_count(n: int, target: int, overlap: int) -> int:
    """Number of panels ``panel_ranges`` produces for ``n`` tokens."""
    if n <= 0:
        return 0

    target = max(1, target)
    if n <= target:
        return 1

    stride = _stride(target, overlap)
    return math.ceil((n - target) / stride) + 1


def build_token_panels(
    tokens: Sequence[int],
    target: int,
    overlap: int,
    decode: Callable[[Sequence[int]], str],
) -> List[TokenPanel]:
    """
    Slice a token sequence into panels.

    Panel text is decoded from the token slice rather than cut out of the
    original characters.

    Args:
        tokens: Document tokens
        target: Tokens per panel
        overlap: Tokens shared by consecutive panels
        decode: Turns a token slice back into text

    Returns:
        Panels in document order
    """
    return [
        TokenPanel(
            text=decode(tokens[start:end]),
            start_token_index=start,
            end_token_index=end,
        )
        for start, end in panel_ranges(len(tokens), target, overlap)
    ]
