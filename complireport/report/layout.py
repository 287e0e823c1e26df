"""Word-wrap and page-break decisions for the PDF export.

The engine never touches a drawing surface directly. Text width comes from
a ``measure`` callable, so the same rules run against reportlab font metrics
in production and against a fixed-width stub in tests.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable


Measure = Callable[[str], float]

# A4 in points
A4 = (595.2755905511812, 841.8897637795277)

# Line counts are derived from floats; this absorbs rounding in ``remaining / line_height``.
_FIT_EPSILON = 1e-6


@dataclass(frozen=True)
class TypographyProfile:
    version: str
    page_width: float = A4[0]
    page_height: float = A4[1]

    margin_left: float = 56
    margin_right: float = 56
    margin_top: float = 72
    footer_height: float = 36
    footer_gap: float = 56
    header_gap: float = 24

    icon_size: float = 32
    icon_ring_width: float = 1.5
    icon_ring_color: tuple[int, int, int] = (79, 195, 247)

    title_font_size: float = 16
    meta_font_size: float = 8.5
    h1_font_size: float = 16
    h1_line_height: float = 22
    h2_font_size: float = 13
    h2_line_height: float = 18
    body_font_size: float = 11
    body_line_height: float = 16
    table_font_size: float = 9.5
    table_line_height: float = 13
    table_cell_padding: float = 4
    footer_font_size: float = 9

    paragraph_gap: float = 6
    heading_gap: float = 10
    separator_gap: float = 10
    list_indent: float = 16

    text_color: tuple[int, int, int] = (50, 50, 50)
    heading_color: tuple[int, int, int] = (17, 24, 39)
    muted_color: tuple[int, int, int] = (90, 96, 110)
    rule_color: tuple[int, int, int] = (230, 236, 244)
    table_header_fill: tuple[int, int, int] = (243, 246, 250)
    pending_color: tuple[int, int, int] = (180, 83, 9)

    @property
    def content_width(self) -> float:
        return self.page_width - self.margin_left - self.margin_right

    @property
    def margin_bottom(self) -> float:
        # reserved so content never overlaps the footer band
        return self.footer_gap + self.footer_height

    @property
    def body_top(self) -> float:
        return self.margin_top + self.header_gap

    @property
    def body_bottom(self) -> float:
        return self.page_height - self.margin_bottom

    @property
    def body_height(self) -> float:
        return self.body_bottom - self.body_top


TYPOGRAPHY_PROFILES: dict[str, TypographyProfile] = {
    # First export: tight margins and a narrow footer band.
    '1.0': TypographyProfile(
        version='1.0',
        margin_left=40,
        margin_right=40,
        margin_top=60,
        footer_height=24,
        footer_gap=40,
        header_gap=20,
        body_font_size=12,
        body_line_height=18,
        paragraph_gap=6,
    ),
    '1.1': TypographyProfile(
        version='1.1',
        margin_left=48,
        margin_right=48,
        margin_top=68,
        footer_height=30,
        footer_gap=48,
        body_font_size=12,
        body_line_height=18,
    ),
    # Footer fix and wider margins.
    '1.2.1': TypographyProfile(version='1.2.1'),
}

DEFAULT_TYPOGRAPHY_VERSION = '1.2.1'


def get_typography(version: str | None = None) -> TypographyProfile:
    key = str(version or DEFAULT_TYPOGRAPHY_VERSION).strip()
    profile = TYPOGRAPHY_PROFILES.get(key)
    if profile is None:
        raise ValueError(f'unknown typography version: {version!r} (known: {", ".join(sorted(TYPOGRAPHY_PROFILES))})')
    return profile


def wrap(text: str, max_width: float, measure: Measure) -> list[str]:
    """Greedy word-wrap.

    Words are added to the current line until the measured candidate is wider
    than ``max_width``; the line is then committed without the last word,
    which starts the next line. A word that is wider than ``max_width`` on its
    own gets a line to itself and is never split. Explicit newlines always
    break. Empty input gives no lines.
    """
    lines: list[str] = []
    normalized = str(text or '').replace('\r\n', '\n').replace('\r', '\n')
    for raw_line in normalized.split('\n'):
        words = raw_line.split()
        if not words:
            continue
        current: list[str] = []
        for word in words:
            candidate = ' '.join(current + [word])
            if not current or measure(candidate) <= max_width:
                current.append(word)
                continue
            lines.append(' '.join(current))
            current = [word]
        if current:
            lines.append(' '.join(current))
    return lines


class BreakAction(str, Enum):
    place = 'place'
    new_page = 'new_page'
    split = 'split'


@dataclass(frozen=True)
class BreakDecision:
    action: BreakAction
    # lines drawn on the current page; 0 for ``new_page``
    lines_here: int


MIN_SPLIT_LINES = 2


def lines_that_fit(remaining: float, line_height: float) -> int:
    if line_height <= 0:
        raise ValueError('line_height must be positive')
    if remaining <= 0:
        return 0
    return int(math.floor(remaining / line_height + _FIT_EPSILON))


def decide_break(
    *,
    line_count: int,
    line_height: float,
    remaining: float,
    splittable: bool,
    at_page_top: bool = False,
    block_height: float | None = None,
) -> BreakDecision:
    """Decide where a block goes given the space left above the footer band.

    1. The whole block fits: place it.
    2. Atomic blocks (headings, list items, table rows, one-line paragraphs)
       move to a new page.
    3. Multi-line paragraphs keep their first ``k`` lines here when ``k >= 2``
       and continue on the next page; with fewer than two lines of room the
       whole paragraph moves.

    ``at_page_top`` marks a block that already starts a fresh page. Moving it
    again would never terminate, so an oversized block is split line by line
    there instead.
    """
    height = block_height if block_height is not None else line_count * line_height
    if height <= remaining + _FIT_EPSILON:
        return BreakDecision(BreakAction.place, line_count)

    fit = lines_that_fit(remaining, line_height)
    if at_page_top:
        return BreakDecision(BreakAction.split, max(1, min(fit, line_count)))

    if not splittable or line_count <= 1:
        return BreakDecision(BreakAction.new_page, 0)

    if fit >= MIN_SPLIT_LINES:
        return BreakDecision(BreakAction.split, min(fit, line_count - 1))
    return BreakDecision(BreakAction.new_page, 0)
