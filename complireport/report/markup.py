from __future__ import annotations

import html
from datetime import datetime

from ..types import GeneratedContent, RenderedReport, ReportPayload, utcnow
from .outline import Cell, ReportOutline, Row, Section, build_outline


def _escape(value: str) -> str:
    return html.escape(str(value or '').replace('\r\n', '\n').replace('\r', '\n'), quote=True).replace('\n', '<br/>')


def _cell_html(cell: Cell) -> str:
    if cell.pending:
        return f'<span class="pending">{_escape(cell.text)}</span>'
    return _escape(cell.text)


def _row_attr(row: Row) -> str:
    return ' class="placeholder"' if row.placeholder else ''


def _render_header(outline: ReportOutline) -> list[str]:
    parts = ['<header class="report-header">', f'<h1>{_escape(outline.title)}</h1>', '<dl class="report-meta">']
    for label, cell in outline.metadata:
        parts.append(f'<dt>{_escape(label)}</dt><dd>{_cell_html(cell)}</dd>')
    parts.append('</dl>')
    parts.append('</header>')
    return parts


def _render_table(section: Section) -> list[str]:
    parts = ['<table>', '<thead><tr>']
    parts.extend(f'<th>{_escape(column)}</th>' for column in section.columns)
    parts.append('</tr></thead>')
    parts.append('<tbody>')
    for row in section.rows:
        cells = ''.join(f'<td>{_cell_html(cell)}</td>' for cell in row.cells)
        parts.append(f'<tr{_row_attr(row)}>{cells}</tr>')
    parts.append('</tbody>')
    parts.append('</table>')
    return parts


def _render_list(section: Section) -> list[str]:
    tag = 'ol' if section.kind == 'numbered' else 'ul'
    parts = [f'<{tag}>']
    for row in section.rows:
        parts.append(f'<li{_row_attr(row)}>{_cell_html(row.cells[0])}</li>')
    parts.append(f'</{tag}>')
    return parts


def _render_section(section: Section) -> list[str]:
    parts = [f'<section class="report-section" data-section="{_escape(section.key)}">', f'<h2>{_escape(section.title)}</h2>']
    if section.pending:
        parts.append(f'<p class="pending">{_escape(section.rows[0].cells[0].text)}</p>')
    elif section.kind == 'table':
        parts.extend(_render_table(section))
    elif section.kind in {'bullets', 'numbered'}:
        parts.extend(_render_list(section))
    else:
        parts.extend(f'<p>{_cell_html(row.cells[0])}</p>' for row in section.rows)
    if section.note:
        parts.append(f'<p class="note"><strong>Disclaimer:</strong> {_escape(section.note)}</p>')
    parts.append('</section>')
    return parts


def render_outline(outline: ReportOutline) -> str:
    parts = ['<article class="compliance-report">']
    parts.extend(_render_header(outline))
    for section in outline.sections:
        parts.extend(_render_section(section))
    parts.append('</article>')
    return '\n'.join(parts) + '\n'


def render_markup(payload: ReportPayload | None, content: GeneratedContent | None) -> str:
    """Render the canonical report markup.

    The output depends only on ``payload`` and ``content``: no timestamps,
    no ordering taken from dicts, nothing read from the environment. Every
    user-supplied string is HTML-escaped before it is inserted.
    """
    return render_outline(build_outline(payload, content))


def render_report(
    payload: ReportPayload | None,
    content: GeneratedContent | None,
    *,
    created_at: datetime | None = None,
) -> RenderedReport:
    # the model computes the fingerprint, once per render
    return RenderedReport(markup=render_markup(payload, content), created_at=created_at or utcnow())
