"""Resolve structured report content into a fixed, fully-populated outline.

Both the markup renderer and the PDF block decomposition read this outline,
so the panel and the exported document always carry the same text. All
placeholder substitution happens here; nothing downstream decides what an
absent or empty field looks like.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, replace
from datetime import date

from ..types import GeneratedContent, ReportPayload


PENDING = '[Pending Input]'
REPORT_TITLE = 'Compliance Intelligence Report'
DISCLAIMER = (
    'This report is for informational purposes only and does not constitute legal, tax, or '
    'financial advice. Consult with licensed professionals for guidance specific to your situation.'
)

TIMELINE_COLUMNS = ('Milestone', 'Owner', 'Due Date', 'Notes')
RISK_COLUMNS = ('Risk', 'Severity', 'Likelihood', 'Mitigation')

_MONTHS = ('Jan', 'Feb', 'Mar', 'Apr', 'May', 'Jun', 'Jul', 'Aug', 'Sep', 'Oct', 'Nov', 'Dec')
_ISO_DATE_PATTERN = re.compile(r'^(\d{4})-(\d{2})-(\d{2})(?:[T\s].*)?$')


@dataclass(frozen=True)
class Cell:
    text: str
    pending: bool = False


@dataclass(frozen=True)
class Row:
    cells: tuple[Cell, ...]
    placeholder: bool = False


@dataclass(frozen=True)
class Section:
    key: str
    title: str
    # paragraphs | bullets | numbered | table
    kind: str
    rows: tuple[Row, ...]
    columns: tuple[str, ...] = ()
    # absent in the source content; ``rows`` holds a single pending notice
    pending: bool = False
    note: str | None = None


@dataclass(frozen=True)
class ReportOutline:
    title: str
    metadata: tuple[tuple[str, Cell], ...]
    sections: tuple[Section, ...]


def _cell(value: str | None) -> Cell:
    text = str(value or '').strip()
    if not text:
        return Cell(PENDING, pending=True)
    return Cell(text)


def _pending_section(key: str, title: str, kind: str, message: str, columns: tuple[str, ...] = ()) -> Section:
    notice = Row((Cell(f'{PENDING} {message}', pending=True),), placeholder=True)
    return Section(key=key, title=title, kind=kind, rows=(notice,), columns=columns, pending=True)


def format_deadline(value: str | None) -> Cell:
    text = str(value or '').strip()
    if not text:
        return Cell(PENDING, pending=True)
    match = _ISO_DATE_PATTERN.match(text)
    if not match:
        return Cell(text)
    try:
        parsed = date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    except ValueError:
        return Cell(text)
    return Cell(f'{_MONTHS[parsed.month - 1]} {parsed.day}, {parsed.year}')


def split_paragraphs(text: str) -> list[str]:
    normalized = str(text or '').replace('\r\n', '\n').replace('\r', '\n')
    blocks = [part.strip() for part in re.split(r'\n\s*\n', normalized)]
    return [item for item in blocks if item]


def _metadata(payload: ReportPayload) -> tuple[tuple[str, Cell], ...]:
    return (
        ('Entity Name', _cell(payload.entity_name)),
        ('Entity Type', _cell(payload.entity_type)),
        ('Jurisdiction', _cell(payload.jurisdiction)),
        ('Filing Type', _cell(payload.filing_type)),
        ('Deadline', format_deadline(payload.deadline)),
    )


def _summary_section(content: GeneratedContent) -> Section:
    title = 'Executive Compliance Summary'
    paragraphs = split_paragraphs(content.summary or '')
    if not paragraphs:
        return _pending_section('summary', title, 'paragraphs', 'Executive summary has not been generated yet.')
    return Section(key='summary', title=title, kind='paragraphs', rows=tuple(Row((Cell(p),)) for p in paragraphs))


def _list_section(
    *,
    key: str,
    title: str,
    kind: str,
    items: list[str] | None,
    absent_message: str,
    default_item: Cell,
    note: str | None = None,
) -> Section:
    if items is None:
        return replace(_pending_section(key, title, kind, absent_message), note=note)
    if not items:
        rows = (Row((default_item,), placeholder=True),)
    else:
        rows = tuple(Row((_cell(item),)) for item in items)
    return Section(key=key, title=title, kind=kind, rows=rows, note=note)


def _timeline_section(content: GeneratedContent) -> Section:
    title = 'Compliance Timeline'
    if content.timeline is None:
        return _pending_section(
            'timeline', title, 'table', 'Timeline milestones have not been generated yet.', TIMELINE_COLUMNS
        )
    if not content.timeline:
        rows = (
            Row(
                (
                    Cell('[Timeline unavailable]', pending=True),
                    Cell('[Pending]', pending=True),
                    Cell('[Deadline required]', pending=True),
                    Cell('Please provide filing deadline to generate timeline', pending=True),
                ),
                placeholder=True,
            ),
        )
    else:
        rows = tuple(
            Row((_cell(item.milestone), _cell(item.owner), _cell(item.due_date), _cell(item.notes)))
            for item in content.timeline
        )
    return Section(key='timeline', title=title, kind='table', rows=rows, columns=TIMELINE_COLUMNS)


def _risk_section(content: GeneratedContent) -> Section:
    title = 'Risk Matrix'
    if content.risk_matrix is None:
        return _pending_section('risk_matrix', title, 'table', 'Risk assessment has not been generated yet.', RISK_COLUMNS)
    if not content.risk_matrix:
        rows = (
            Row(
                (
                    Cell('Late filing'),
                    Cell('High'),
                    Cell('Medium'),
                    Cell('Calendar the deadline with reminders and submit at least 14 days early.'),
                ),
                placeholder=True,
            ),
        )
    else:
        rows = tuple(
            Row((_cell(item.risk), _cell(item.severity), _cell(item.likelihood), _cell(item.mitigation)))
            for item in content.risk_matrix
        )
    return Section(key='risk_matrix', title=title, kind='table', rows=rows, columns=RISK_COLUMNS)


def build_outline(payload: ReportPayload | None, content: GeneratedContent | None) -> ReportOutline:
    payload = payload or ReportPayload()
    content = content or GeneratedContent()
    sections = (
        _summary_section(content),
        _list_section(
            key='checklist',
            title='Filing Requirements Checklist',
            kind='bullets',
            items=content.checklist,
            absent_message='Requirements checklist has not been generated yet.',
            default_item=Cell(PENDING, pending=True),
        ),
        _timeline_section(content),
        _risk_section(content),
        _list_section(
            key='recommendations',
            title='Strategic Recommendations',
            kind='numbered',
            items=content.recommendations,
            absent_message='Recommendations have not been generated yet.',
            default_item=Cell('Review this report with a qualified compliance advisor before filing.'),
        ),
        _list_section(
            key='references',
            title='Official References',
            kind='bullets',
            items=content.references,
            absent_message='References have not been generated yet.',
            default_item=Cell('Contact your state or federal agency for official filing portals.'),
            note=DISCLAIMER,
        ),
    )
    return ReportOutline(title=REPORT_TITLE, metadata=_metadata(payload), sections=sections)
