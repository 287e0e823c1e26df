"""Page-drawing instructions handed to a vector drawing surface.

Coordinates are in points measured from the top-left corner of the page,
with ``y`` growing downwards; text ``y`` is the baseline. Surfaces that use
a bottom-up origin (reportlab) flip at replay time.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Union

from ..types import BrandingConfig
from .layout import Measure, TypographyProfile

Color = tuple[int, int, int]


@dataclass(frozen=True)
class TextOp:
    x: float
    y: float
    text: str
    font: str
    size: float
    color: Color
    # left | right; right-aligned text ends at ``x``
    align: str = 'left'


@dataclass(frozen=True)
class LineOp:
    x1: float
    y1: float
    x2: float
    y2: float
    color: Color
    width: float = 0.5


@dataclass(frozen=True)
class RectOp:
    x: float
    y: float
    width: float
    height: float
    fill: Color


@dataclass(frozen=True)
class IconOp:
    """Branding icon clipped to a circle inside a thin ring."""

    x: float
    y: float
    size: float
    ring_color: Color
    ring_width: float


DrawOp = Union[TextOp, LineOp, RectOp, IconOp]


@dataclass
class Page:
    number: int
    ops: list[DrawOp] = field(default_factory=list)

    def texts(self) -> list[str]:
        return [op.text for op in self.ops if isinstance(op, TextOp)]


@dataclass(frozen=True)
class DrawingContext:
    """Everything layout needs once resources are ready."""

    branding: BrandingConfig
    profile: TypographyProfile
    regular_font: str
    bold_font: str
    measurer: Callable[[str, float], Measure]
    # reportlab ImageReader for the branding icon; None leaves the icon area blank
    icon: Any | None = None
    # loaded drawing library handle used to replay pages into a PDF
    library: Any | None = None

    def measure(self, font: str, size: float) -> Measure:
        return self.measurer(font, size)

    @property
    def has_icon(self) -> bool:
        return self.icon is not None
