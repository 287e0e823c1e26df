"""Two-pass page assembly.

Pass 1 lays blocks out page by page and draws each page's header as soon as
the page starts. Footers need the final page count, so nothing footer-related
is drawn until pass 2 walks the finished pages and stamps ``Page N of total``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import date, datetime
from typing import Callable, Iterable

from ..types import ExportSuffix, utcnow
from .blocks import Heading, LayoutBlock, ListItem, Paragraph, Separator, TableRow
from .drawing import DrawingContext, DrawOp, IconOp, LineOp, Page, RectOp, TextOp
from .layout import BreakAction, decide_break, wrap


logger = logging.getLogger(__name__)

WHITE = (255, 255, 255)


@dataclass
class PageState:
    page_index: int = -1
    cursor_y: float = 0.0
    blocks_on_page: int = 0


@dataclass
class ExportedDocument:
    pages: list[Page]
    filename: str
    title: str
    generated_at: datetime
    checksum: str | None = None

    @property
    def page_count(self) -> int:
        return len(self.pages)


@dataclass
class _Prepared:
    """A block measured and wrapped, ready to be drawn in line ranges."""

    line_count: int
    line_height: float
    gap_before: float
    splittable: bool
    draw: Callable[[list[DrawOp], float, int, int], None]
    # fixed height added to every drawn slice (table cell padding)
    extra: float = 0.0


def format_generated_at(dt: datetime) -> str:
    return dt.strftime('%Y-%m-%d %H:%M:%S UTC')


def export_filename(
    toolkit_name: str,
    suffix: ExportSuffix | str,
    *,
    brand_code: str = 'YBG',
    on: date | None = None,
) -> str:
    stamp = (on or utcnow().date()).strftime('%Y-%m-%d')
    safe_name = re.sub(r'[^a-z0-9]+', '_', str(toolkit_name or ''), flags=re.IGNORECASE).strip('_') or 'Toolkit'
    safe_brand = re.sub(r'[^a-z0-9]+', '_', str(brand_code or ''), flags=re.IGNORECASE).strip('_') or 'Brand'
    suffix_value = suffix.value if isinstance(suffix, ExportSuffix) else str(suffix)
    return f'{stamp}_{safe_brand}_{safe_name}_{suffix_value}.pdf'


def _baseline(top: float, index: int, line_height: float, font_size: float) -> float:
    return top + index * line_height + (line_height + font_size * 0.7) / 2


class PageAssembler:
    def __init__(
        self,
        ctx: DrawingContext,
        *,
        generated_at: datetime | None = None,
        checksum: str | None = None,
        title: str | None = None,
    ):
        self.ctx = ctx
        self.profile = ctx.profile
        self.generated_at = generated_at or utcnow()
        self.checksum = checksum
        self.title = title or ctx.branding.toolkit_name
        self.pages: list[Page] = []
        self.state = PageState()

    # ------------------------------------------------------------------
    # pass 1
    # ------------------------------------------------------------------
    def layout(self, blocks: Iterable[LayoutBlock]) -> list[Page]:
        self.pages = []
        self.state = PageState()
        self._start_page()
        for block in blocks:
            if isinstance(block, Separator):
                self._place_separator(block)
                continue
            prepared = self._prepare(block)
            if prepared.line_count <= 0:
                continue
            self._place(prepared)
        logger.debug('Layout finished with %d page(s)', len(self.pages))
        return self.pages

    def _start_page(self) -> None:
        page = Page(number=len(self.pages) + 1)
        self.pages.append(page)
        self.state.page_index = len(self.pages) - 1
        self.state.cursor_y = self.profile.body_top
        self.state.blocks_on_page = 0
        self._draw_header(page)

    @property
    def _page(self) -> Page:
        return self.pages[self.state.page_index]

    def _draw_header(self, page: Page) -> None:
        p = self.profile
        ops = page.ops
        icon_top = p.margin_top - p.icon_size - 8
        if self.ctx.has_icon:
            ops.append(IconOp(p.margin_left, icon_top, p.icon_size, p.icon_ring_color, p.icon_ring_width))

        title_x = p.margin_left + p.icon_size + 10
        ops.append(TextOp(title_x, p.margin_top - 4, self.title, self.ctx.bold_font, p.title_font_size, p.heading_color))

        right_x = p.page_width - p.margin_right
        ops.append(
            TextOp(
                right_x,
                p.margin_top - 16,
                f'Generated {format_generated_at(self.generated_at)}',
                self.ctx.regular_font,
                p.meta_font_size,
                p.muted_color,
                align='right',
            )
        )
        if self.checksum:
            ops.append(
                TextOp(
                    right_x,
                    p.margin_top - 4,
                    f'Checksum {self.checksum}',
                    self.ctx.regular_font,
                    p.meta_font_size,
                    p.muted_color,
                    align='right',
                )
            )
        ops.append(LineOp(p.margin_left, p.margin_top + 8, right_x, p.margin_top + 8, p.rule_color, 0.5))

    def _place(self, prepared: _Prepared) -> None:
        body_bottom = self.profile.body_bottom
        start = 0
        while start < prepared.line_count:
            at_top = self.state.blocks_on_page == 0
            gap = 0.0 if at_top else prepared.gap_before
            top = self.state.cursor_y + gap
            remaining = body_bottom - top - prepared.extra
            decision = decide_break(
                line_count=prepared.line_count - start,
                line_height=prepared.line_height,
                remaining=remaining,
                splittable=prepared.splittable,
                at_page_top=at_top,
            )
            if decision.action is BreakAction.new_page:
                self._start_page()
                continue

            end = start + decision.lines_here
            prepared.draw(self._page.ops, top, start, end)
            self.state.cursor_y = top + (end - start) * prepared.line_height + prepared.extra
            self.state.blocks_on_page += 1
            start = end
            if start < prepared.line_count:
                self._start_page()

    def _place_separator(self, block: Separator) -> None:
        # never open a page with a separator, and drop one that would cross the footer band
        if self.state.blocks_on_page == 0:
            return
        gap = self.profile.separator_gap
        if self.state.cursor_y + gap > self.profile.body_bottom:
            return
        if block.rule:
            y = self.state.cursor_y + gap / 2
            p = self.profile
            self._page.ops.append(LineOp(p.margin_left, y, p.page_width - p.margin_right, y, p.rule_color, 0.5))
        self.state.cursor_y += gap

    # ------------------------------------------------------------------
    # block preparation
    # ------------------------------------------------------------------
    def _prepare(self, block: LayoutBlock) -> _Prepared:
        if isinstance(block, Heading):
            return self._prepare_heading(block)
        if isinstance(block, Paragraph):
            return self._prepare_paragraph(block)
        if isinstance(block, ListItem):
            return self._prepare_list_item(block)
        if isinstance(block, TableRow):
            return self._prepare_table_row(block)
        raise TypeError(f'unsupported layout block: {type(block).__name__}')

    def _text_lines(self, lines: list[str], x: float, font: str, size: float, color, line_height: float):
        def draw(ops: list[DrawOp], top: float, start: int, end: int) -> None:
            for offset, line in enumerate(lines[start:end]):
                ops.append(TextOp(x, _baseline(top, offset, line_height, size), line, font, size, color))

        return draw

    def _prepare_heading(self, block: Heading) -> _Prepared:
        p = self.profile
        size = p.h1_font_size if block.level <= 1 else p.h2_font_size
        line_height = p.h1_line_height if block.level <= 1 else p.h2_line_height
        font = self.ctx.bold_font
        lines = wrap(block.text, p.content_width, self.ctx.measure(font, size))
        return _Prepared(
            line_count=len(lines),
            line_height=line_height,
            gap_before=p.heading_gap,
            splittable=False,
            draw=self._text_lines(lines, p.margin_left, font, size, p.heading_color, line_height),
        )

    def _prepare_paragraph(self, block: Paragraph) -> _Prepared:
        p = self.profile
        font = self.ctx.regular_font
        lines = wrap(block.text, p.content_width, self.ctx.measure(font, p.body_font_size))
        color = p.pending_color if block.pending else p.text_color
        return _Prepared(
            line_count=len(lines),
            line_height=p.body_line_height,
            gap_before=p.paragraph_gap,
            splittable=True,
            draw=self._text_lines(lines, p.margin_left, font, p.body_font_size, color, p.body_line_height),
        )

    def _prepare_list_item(self, block: ListItem) -> _Prepared:
        p = self.profile
        font = self.ctx.regular_font
        size = p.body_font_size
        text_x = p.margin_left + p.list_indent
        lines = wrap(block.text, p.content_width - p.list_indent, self.ctx.measure(font, size))
        marker = f'{block.ordinal}.' if block.ordinal is not None else '•'
        color = p.pending_color if block.pending else p.text_color
        draw_text = self._text_lines(lines, text_x, font, size, color, p.body_line_height)

        def draw(ops: list[DrawOp], top: float, start: int, end: int) -> None:
            if start == 0:
                ops.append(TextOp(p.margin_left, _baseline(top, 0, p.body_line_height, size), marker, font, size, p.text_color))
            draw_text(ops, top, start, end)

        return _Prepared(
            line_count=len(lines),
            line_height=p.body_line_height,
            gap_before=p.paragraph_gap / 2,
            splittable=False,
            draw=draw,
        )

    def _prepare_table_row(self, block: TableRow) -> _Prepared:
        p = self.profile
        cells = list(block.cells) or ['']
        column_width = p.content_width / len(cells)
        padding = p.table_cell_padding
        size = p.table_font_size
        line_height = p.table_line_height
        font = self.ctx.bold_font if block.header else self.ctx.regular_font
        measure = self.ctx.measure(font, size)
        wrapped = [wrap(cell, column_width - 2 * padding, measure) for cell in cells]
        line_count = max(1, max(len(lines) for lines in wrapped))
        pending = block.pending or tuple(False for _ in cells)

        def draw(ops: list[DrawOp], top: float, start: int, end: int) -> None:
            height = (end - start) * line_height + 2 * padding
            if block.header:
                ops.append(RectOp(p.margin_left, top, p.content_width, height, p.table_header_fill))
            for column, lines in enumerate(wrapped):
                x = p.margin_left + column * column_width + padding
                is_pending = column < len(pending) and pending[column]
                color = p.pending_color if is_pending else (p.heading_color if block.header else p.text_color)
                for offset, line in enumerate(lines[start:end]):
                    y = _baseline(top + padding, offset, line_height, size)
                    ops.append(TextOp(x, y, line, font, size, color))
            bottom = top + height
            ops.append(LineOp(p.margin_left, bottom, p.margin_left + p.content_width, bottom, p.rule_color, 0.5))

        return _Prepared(
            line_count=line_count,
            line_height=line_height,
            gap_before=0.0,
            splittable=False,
            draw=draw,
            extra=2 * padding,
        )

    # ------------------------------------------------------------------
    # pass 2
    # ------------------------------------------------------------------
    def stamp_footers(self, pages: list[Page]) -> None:
        p = self.profile
        total = len(pages)
        baseline = p.page_height - p.footer_height
        right_x = p.page_width - p.margin_right
        for page in pages:
            # clear the band so nothing drawn earlier shows through
            page.ops.append(
                RectOp(p.margin_left, p.page_height - p.footer_height - 24, p.content_width, p.footer_height + 28, WHITE)
            )
            page.ops.append(LineOp(p.margin_left, baseline - 14, right_x, baseline - 14, p.rule_color, 0.5))
            page.ops.append(
                TextOp(
                    p.margin_left,
                    baseline,
                    f'Powered by {self.ctx.branding.brand_line}',
                    self.ctx.regular_font,
                    p.footer_font_size,
                    p.muted_color,
                )
            )
            page.ops.append(
                TextOp(
                    right_x,
                    baseline,
                    f'Page {page.number} of {total}',
                    self.ctx.regular_font,
                    p.footer_font_size,
                    p.muted_color,
                    align='right',
                )
            )

    def assemble(self, blocks: Iterable[LayoutBlock], *, filename: str) -> ExportedDocument:
        pages = self.layout(blocks)
        self.stamp_footers(pages)
        logger.info('Assembled %s: %d page(s)', filename, len(pages))
        return ExportedDocument(
            pages=pages,
            filename=filename,
            title=self.title,
            generated_at=self.generated_at,
            checksum=self.checksum,
        )
