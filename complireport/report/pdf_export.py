from __future__ import annotations

import io
import logging
from typing import Any, Iterable, Protocol

from ..errors import ResourceError
from .assembler import ExportedDocument
from .drawing import Color, DrawingContext, DrawOp, IconOp, LineOp, Page, RectOp, TextOp


logger = logging.getLogger(__name__)


class DrawingSurface(Protocol):
    def begin_page(self, page: Page) -> None: ...

    def draw(self, op: DrawOp) -> None: ...

    def end_page(self, page: Page) -> None: ...


def _rgb(color: Color) -> tuple[float, float, float]:
    return (color[0] / 255.0, color[1] / 255.0, color[2] / 255.0)


class ReportLabSurface:
    """Replays top-down drawing instructions onto a reportlab canvas."""

    def __init__(self, ctx: DrawingContext, buffer: Any, *, title: str, subject: str | None = None):
        if ctx.library is None:
            raise ResourceError('drawing library', 'drawing context was built without a loaded library', fatal=True)
        self.ctx = ctx
        self.page_width = ctx.profile.page_width
        self.page_height = ctx.profile.page_height
        self.canvas = ctx.library.canvas.Canvas(buffer, pagesize=(self.page_width, self.page_height))
        self.canvas.setTitle(title)
        self.canvas.setAuthor(ctx.branding.brand_line)
        if subject:
            self.canvas.setSubject(subject)
        self.canvas.setProducer(ctx.branding.toolkit_name)

    def _y(self, y: float) -> float:
        return self.page_height - y

    def _safe_font(self, font_name: str, size: float) -> None:
        for candidate in (font_name, self.ctx.regular_font, 'Helvetica'):
            if not candidate:
                continue
            try:
                self.canvas.setFont(candidate, size)
                return
            except Exception:
                continue

    def begin_page(self, page: Page) -> None:
        logger.debug('Rendering page %d (%d ops)', page.number, len(page.ops))

    def draw(self, op: DrawOp) -> None:
        c = self.canvas
        if isinstance(op, TextOp):
            c.setFillColorRGB(*_rgb(op.color))
            self._safe_font(op.font, op.size)
            if op.align == 'right':
                c.drawRightString(op.x, self._y(op.y), op.text)
            else:
                c.drawString(op.x, self._y(op.y), op.text)
        elif isinstance(op, LineOp):
            c.setStrokeColorRGB(*_rgb(op.color))
            c.setLineWidth(op.width)
            c.line(op.x1, self._y(op.y1), op.x2, self._y(op.y2))
        elif isinstance(op, RectOp):
            c.setFillColorRGB(*_rgb(op.fill))
            c.rect(op.x, self._y(op.y) - op.height, op.width, op.height, stroke=0, fill=1)
        elif isinstance(op, IconOp):
            self._draw_icon(op)
        else:
            raise TypeError(f'unsupported drawing op: {type(op).__name__}')

    def _draw_icon(self, op: IconOp) -> None:
        if self.ctx.icon is None:
            return
        c = self.canvas
        radius = op.size / 2
        cx = op.x + radius
        cy = self._y(op.y + radius)
        c.saveState()
        try:
            clip = c.beginPath()
            clip.circle(cx, cy, radius)
            c.clipPath(clip, stroke=0, fill=0)
            c.drawImage(
                self.ctx.icon,
                op.x,
                self._y(op.y + op.size),
                width=op.size,
                height=op.size,
                preserveAspectRatio=True,
                mask='auto',
            )
        except Exception as exc:
            logger.warning('Failed to draw branding icon: %s', exc)
        finally:
            c.restoreState()
        c.saveState()
        c.setStrokeColorRGB(*_rgb(op.ring_color))
        c.setLineWidth(op.ring_width)
        c.circle(cx, cy, radius + 3, stroke=1, fill=0)
        c.restoreState()

    def end_page(self, page: Page) -> None:
        self.canvas.showPage()

    def save(self) -> None:
        self.canvas.save()


def replay(pages: Iterable[Page], surface: DrawingSurface) -> None:
    for page in pages:
        surface.begin_page(page)
        for op in page.ops:
            surface.draw(op)
        surface.end_page(page)


def render_pdf(document: ExportedDocument, ctx: DrawingContext) -> bytes:
    buffer = io.BytesIO()
    subject = f'Checksum {document.checksum}' if document.checksum else None
    surface = ReportLabSurface(ctx, buffer, title=document.title, subject=subject)
    replay(document.pages, surface)
    surface.save()
    return buffer.getvalue()
