from __future__ import annotations

import logging
import threading
from uuid import UUID

from .errors import IntegrityMismatch
from .report.fingerprint import verify_checksum
from .report.markup import render_markup, render_report
from .storage import (
    append_event,
    markup_path,
    read_json,
    read_text,
    record_path,
    reports_root,
    write_json_atomic,
    write_text_atomic,
)
from .types import GeneratedContent, RenderedReport, ReportPayload, StoredReport


logger = logging.getLogger(__name__)

_STATE_LOCK = threading.RLock()


def default_report_name(payload: ReportPayload) -> str:
    parts: list[str] = []
    if payload.filing_type:
        parts.append(payload.filing_type)
    if payload.entity_type:
        parts.append(f'for {payload.entity_type}')
    if payload.entity_name:
        parts.append(f'({payload.entity_name})')
    name = ' '.join(parts)
    if payload.jurisdiction:
        name = f'{name} - {payload.jurisdiction}' if name else payload.jurisdiction
    return name or 'Compliance Filing'


def save_report(
    payload: ReportPayload,
    content: GeneratedContent,
    *,
    rendered: RenderedReport | None = None,
    name: str | None = None,
) -> StoredReport:
    if rendered is None:
        rendered = render_report(payload, content)
    elif rendered.markup != render_markup(payload, content):
        raise ValueError('rendered markup does not belong to this payload and content')
    record = StoredReport(
        name=(name or '').strip() or default_report_name(payload),
        payload=payload,
        content=content,
        html_content=rendered.markup,
        checksum=rendered.checksum,
        created_at=rendered.created_at,
    )
    with _STATE_LOCK:
        write_json_atomic(record_path(record.id), record.model_dump(mode='json'))
        write_text_atomic(markup_path(record.id), record.html_content)
    append_event(record.id, 'saved', checksum=record.checksum, name=record.name)
    return record


def check_integrity(record: StoredReport) -> None:
    """Raise ``IntegrityMismatch`` unless every copy of the report agrees with its checksum.

    The markup kept in the record, the ``report.html`` written beside it and a
    fresh render of the stored payload and content must all fingerprint to
    ``record.checksum``. The export is built from payload and content, so an
    edit to either one is caught here even when the stored markup is intact.
    """
    path = markup_path(record.id, create=False)
    with _STATE_LOCK:
        on_disk = read_text(path) if path.exists() else ''
    report_id = str(record.id)
    for markup in (record.html_content, on_disk, render_markup(record.payload, record.content)):
        verify_checksum(markup, record.checksum, report_id=report_id)


def verify_report(record: StoredReport) -> StoredReport:
    try:
        check_integrity(record)
    except IntegrityMismatch as exc:
        logger.warning('Integrity check failed for report %s: %s', record.id, exc)
        append_event(record.id, 'integrity_mismatch', expected=exc.expected, actual=exc.actual)
        raise
    return record


def load_report(report_id: UUID | str, *, verify: bool = True) -> StoredReport | None:
    """Load a saved report and verify it.

    A mismatch means the record or its markup file was changed out of band;
    it is raised as ``IntegrityMismatch`` and never repaired here.
    """
    try:
        path = record_path(report_id, create=False)
    except ValueError:
        return None
    if not path.exists():
        return None
    with _STATE_LOCK:
        payload = read_json(path)
    record = StoredReport.model_validate(payload)
    return verify_report(record) if verify else record


def list_reports(limit: int | None = None, *, verify: bool = False) -> list[StoredReport]:
    """Saved reports, oldest first; ``limit`` keeps the newest ``limit``.

    With ``verify`` every returned record is checked and the first mismatch
    is raised.
    """
    records: list[StoredReport] = []
    with _STATE_LOCK:
        for child in reports_root().iterdir():
            path = child / 'report.json'
            if not child.is_dir() or not path.exists():
                continue
            try:
                records.append(StoredReport.model_validate(read_json(path)))
            except Exception as exc:
                logger.warning('Skipping unreadable report record %s: %s', path, exc)
    records.sort(key=lambda item: (item.created_at, str(item.id)))
    if limit is not None and limit >= 0:
        records = records[-limit:] if limit else []
    if verify:
        for record in records:
            verify_report(record)
    return records
