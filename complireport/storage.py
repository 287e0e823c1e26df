from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import UUID

from .config import get_settings


def reports_root() -> Path:
    root = get_settings().data_dir / 'reports'
    root.mkdir(parents=True, exist_ok=True)
    return root


def _safe_report_id(report_id: UUID | str) -> str:
    if isinstance(report_id, UUID):
        return str(report_id)
    token = str(report_id or '').strip()
    if not token:
        raise ValueError('report_id is required')
    try:
        return str(UUID(token))
    except Exception as exc:
        raise ValueError(f'invalid report_id: {report_id}') from exc


def report_dir(report_id: UUID | str, *, create: bool = True) -> Path:
    path = reports_root() / _safe_report_id(report_id)
    if create:
        path.mkdir(parents=True, exist_ok=True)
    return path


def record_path(report_id: UUID | str, *, create: bool = True) -> Path:
    return report_dir(report_id, create=create) / 'report.json'


def markup_path(report_id: UUID | str, *, create: bool = True) -> Path:
    return report_dir(report_id, create=create) / 'report.html'


def events_path(report_id: UUID | str) -> Path:
    return report_dir(report_id) / 'events.jsonl'


def write_json_atomic(path: Path, payload: dict[str, Any]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    tmp.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding='utf-8')
    tmp.replace(path)


def write_text_atomic(path: Path, content: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_suffix(path.suffix + '.tmp')
    # newline='' keeps the markup byte-identical on every platform
    with tmp.open('w', encoding='utf-8', newline='') as f:
        f.write(content)
    tmp.replace(path)


def read_json(path: Path) -> dict[str, Any]:
    return json.loads(path.read_text(encoding='utf-8'))


def read_text(path: Path) -> str:
    with path.open('r', encoding='utf-8', newline='') as f:
        return f.read()


def append_event(report_id: UUID | str, event: str, **extra: Any) -> None:
    now = datetime.now(timezone.utc).isoformat()
    row = {
        'ts': now,
        'event': event,
        **extra,
    }
    events_file = events_path(report_id)
    events_file.parent.mkdir(parents=True, exist_ok=True)
    with events_file.open('a', encoding='utf-8') as f:
        f.write(json.dumps(row, ensure_ascii=False) + '\n')
