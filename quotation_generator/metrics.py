"""Row height estimation for the item table.

Heights are estimated from character counts rather than real glyph
metrics so that pagination can be planned without a PDF canvas.  The
estimator is a single-method strategy; ``FontWidthEstimator`` swaps in
measured widths where a font is available.
"""

from __future__ import annotations

import math
from typing import TYPE_CHECKING, Optional, Protocol

from .formatting import TextWidthProvider, wrap_text

if TYPE_CHECKING:
    from .models import QuoteItem
    from .pagination import LayoutBudget


class LineEstimator(Protocol):
    def estimate_lines(self, text: Optional[str], chars_per_line: int) -> int:
        ...


class CharacterCountEstimator:
    """Monospace approximation: every character is one column wide."""

    def estimate_lines(self, text: Optional[str], chars_per_line: int) -> int:
        if not text:
            return 1
        per_line = max(1, int(chars_per_line))
        segments = text.replace("\r\n", "\n").split("\n")
        return sum(math.ceil(max(1, len(segment)) / per_line) for segment in segments)


class FontWidthEstimator:
    """Counts wrapped lines using measured string widths.

    ``chars_per_line`` is converted into a column width through the width of
    ``reference_glyph``, so callers keep passing character counts.
    """

    def __init__(
        self,
        fonts: TextWidthProvider,
        font_size: int,
        reference_glyph: str = "0",
    ) -> None:
        self.fonts = fonts
        self.font_size = font_size
        self.glyph_width = fonts.text_width(reference_glyph, font_size) or 1.0

    def estimate_lines(self, text: Optional[str], chars_per_line: int) -> int:
        if not text:
            return 1
        max_width = max(1, int(chars_per_line)) * self.glyph_width
        lines = wrap_text(self.fonts, text.replace("\r\n", "\n"), max_width, self.font_size)
        return max(1, len(lines))


DEFAULT_ESTIMATOR = CharacterCountEstimator()


def estimate_lines(text: Optional[str], chars_per_line: int) -> int:
    return DEFAULT_ESTIMATOR.estimate_lines(text, chars_per_line)


def item_line_count(
    item: "QuoteItem",
    budget: "LayoutBudget",
    estimator: Optional[LineEstimator] = None,
) -> int:
    estimator = estimator or DEFAULT_ESTIMATOR
    name_block = estimator.estimate_lines(item.name, budget.name_chars_per_line)
    if item.description is not None:
        name_block += estimator.estimate_lines(item.description, budget.description_chars_per_line)
    spec_lines = estimator.estimate_lines(item.spec, budget.spec_chars_per_line)
    return max(name_block, spec_lines, 1)


def row_height(
    item: "QuoteItem",
    budget: "LayoutBudget",
    estimator: Optional[LineEstimator] = None,
) -> float:
    lines = item_line_count(item, budget, estimator)
    return budget.row_base_height + (lines - 1) * budget.row_line_height
