from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Union

from markdown_it import MarkdownIt

from ..types import GeneratedContent, ReportPayload
from .outline import ReportOutline, Section, build_outline


@dataclass(frozen=True)
class Heading:
    # 1 = document or entry title, 2 = section title
    level: int
    text: str


@dataclass(frozen=True)
class Paragraph:
    text: str
    pending: bool = False


@dataclass(frozen=True)
class TableRow:
    cells: tuple[str, ...]
    header: bool = False
    pending: tuple[bool, ...] = ()


@dataclass(frozen=True)
class ListItem:
    text: str
    # None renders a bullet
    ordinal: int | None = None
    pending: bool = False


@dataclass(frozen=True)
class Separator:
    # False is a plain vertical spacer, True also draws a horizontal rule
    rule: bool = False


LayoutBlock = Union[Heading, Paragraph, TableRow, ListItem, Separator]

_MARKDOWN_PARSER: MarkdownIt | None = None


def collapse_separators(blocks: list[LayoutBlock]) -> list[LayoutBlock]:
    """Merge separator runs into one and drop separators at either end."""
    out: list[LayoutBlock] = []
    for block in blocks:
        if isinstance(block, Separator):
            if not out:
                continue
            previous = out[-1]
            if isinstance(previous, Separator):
                if block.rule and not previous.rule:
                    out[-1] = block
                continue
        out.append(block)
    while out and isinstance(out[-1], Separator):
        out.pop()
    return out


def _section_blocks(section: Section) -> list[LayoutBlock]:
    blocks: list[LayoutBlock] = [Heading(2, section.title)]
    if section.pending:
        notice = section.rows[0].cells[0]
        blocks.append(Paragraph(notice.text, pending=True))
    elif section.kind == 'table':
        blocks.append(TableRow(tuple(section.columns), header=True))
        for row in section.rows:
            blocks.append(
                TableRow(
                    tuple(cell.text for cell in row.cells),
                    pending=tuple(cell.pending for cell in row.cells),
                )
            )
    elif section.kind in {'bullets', 'numbered'}:
        for index, row in enumerate(section.rows, start=1):
            cell = row.cells[0]
            ordinal = index if section.kind == 'numbered' else None
            blocks.append(ListItem(cell.text, ordinal=ordinal, pending=cell.pending))
    else:
        for row in section.rows:
            cell = row.cells[0]
            blocks.append(Paragraph(cell.text, pending=cell.pending))
    if section.note:
        blocks.append(Separator())
        blocks.append(Paragraph(f'Disclaimer: {section.note}'))
    blocks.append(Separator(rule=True))
    return blocks


def outline_to_blocks(outline: ReportOutline) -> list[LayoutBlock]:
    blocks: list[LayoutBlock] = [Heading(1, outline.title)]
    for label, cell in outline.metadata:
        blocks.append(Paragraph(f'{label}: {cell.text}', pending=cell.pending))
    blocks.append(Separator(rule=True))
    for section in outline.sections:
        blocks.extend(_section_blocks(section))
    return collapse_separators(blocks)


def to_blocks(content: GeneratedContent | None, payload: ReportPayload | None = None) -> list[LayoutBlock]:
    """Decompose report content into layout blocks in document order.

    Text comes from the same outline the markup renderer uses. Each table row
    is its own block, so a table can break between rows without repeating its
    header row.
    """
    return outline_to_blocks(build_outline(payload, content))


def _markdown_parser() -> MarkdownIt:
    global _MARKDOWN_PARSER
    if _MARKDOWN_PARSER is None:
        _MARKDOWN_PARSER = MarkdownIt('commonmark', {'typographer': False}).enable('table')
    return _MARKDOWN_PARSER


def _inline_text(token: Any) -> str:
    children = getattr(token, 'children', None) or []
    if not children:
        return str(getattr(token, 'content', '') or '').strip()
    parts: list[str] = []
    for child in children:
        if child.type in {'text', 'code_inline', 'html_inline'}:
            parts.append(child.content)
        elif child.type in {'softbreak', 'hardbreak'}:
            parts.append('\n' if child.type == 'hardbreak' else ' ')
        elif child.type == 'image':
            parts.append(child.content or '')
    return ''.join(parts).strip()


def markdown_to_blocks(text: str) -> list[LayoutBlock]:
    """Decompose free-form markdown (a plain AI result) into layout blocks."""
    tokens = _markdown_parser().parse(str(text or ''))
    blocks: list[LayoutBlock] = []
    lists: list[dict[str, Any]] = []
    row_cells: list[str] = []
    in_thead = False
    in_cell = False
    heading_level: int | None = None
    # True until the first paragraph of the current list item is emitted
    item_pending = False

    for token in tokens:
        kind = token.type
        if kind == 'heading_open':
            heading_level = 1 if token.tag == 'h1' else 2
        elif kind == 'heading_close':
            heading_level = None
        elif kind in {'bullet_list_open', 'ordered_list_open'}:
            start = token.attrGet('start') if kind == 'ordered_list_open' else None
            lists.append({'ordered': kind == 'ordered_list_open', 'next': int(start or 1)})
        elif kind in {'bullet_list_close', 'ordered_list_close'}:
            if lists:
                lists.pop()
            if not lists:
                blocks.append(Separator())
        elif kind == 'list_item_open':
            item_pending = True
        elif kind == 'list_item_close':
            item_pending = False
        elif kind == 'thead_open':
            in_thead = True
        elif kind == 'thead_close':
            in_thead = False
        elif kind == 'tr_open':
            row_cells = []
        elif kind in {'th_open', 'td_open'}:
            in_cell = True
        elif kind in {'th_close', 'td_close'}:
            in_cell = False
        elif kind == 'tr_close':
            blocks.append(TableRow(tuple(row_cells), header=in_thead))
        elif kind == 'table_close':
            blocks.append(Separator())
        elif kind == 'hr':
            blocks.append(Separator(rule=True))
        elif kind in {'fence', 'code_block'}:
            blocks.append(Paragraph(token.content.rstrip('\n')))
            blocks.append(Separator())
        elif kind == 'inline':
            content = _inline_text(token)
            if in_cell:
                row_cells.append(content)
            elif heading_level is not None:
                blocks.append(Heading(heading_level, content))
            elif lists and item_pending:
                current = lists[-1]
                ordinal = None
                if current['ordered']:
                    ordinal = current['next']
                    current['next'] += 1
                blocks.append(ListItem(content, ordinal=ordinal))
                item_pending = False
            elif content:
                blocks.append(Paragraph(content))
        elif kind == 'paragraph_close' and not lists:
            blocks.append(Separator())
    return collapse_separators(blocks)
