from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

from complireport.config import get_settings
from complireport.errors import ExportUnavailable, IntegrityMismatch
from complireport.exporter import EXPORT_MODES, build_loader, export_markdown, export_report, export_results
from complireport.report.markup import render_report
from complireport.state import list_reports, load_report, save_report
from complireport.storage import append_event
from complireport.types import StoredReport, coerce_content, coerce_payload


def _print_json(payload: dict) -> None:
    print(json.dumps(payload, ensure_ascii=False, indent=2))


def _configure_logging() -> None:
    level = getattr(logging, str(get_settings().log_level).upper(), logging.INFO)
    logging.basicConfig(level=level, format='%(asctime)s %(levelname)s %(name)s: %(message)s', stream=sys.stderr)


def _load_json_arg(value: str | None) -> dict[str, Any]:
    """Accept inline JSON, a path to a JSON file, or ``-`` for stdin."""
    if value is None:
        return {}
    if value == '-':
        raw = sys.stdin.read()
    elif value.lstrip().startswith('{'):
        raw = value
    else:
        raw = Path(value).expanduser().read_text(encoding='utf-8')
    data = json.loads(raw)
    if not isinstance(data, dict):
        raise ValueError('expected a JSON object')
    return data


def _report_snapshot(record: StoredReport) -> dict:
    return {
        'report_id': str(record.id),
        'name': record.name,
        'checksum': record.checksum,
        'created_at': record.created_at.isoformat(),
        'payload': record.payload.model_dump(mode='json'),
    }


def _export_error(exc: ExportUnavailable) -> int:
    _print_json({'status': 'error', 'message': exc.user_message, 'detail': exc.detail})
    return 2


def _integrity_error(exc: IntegrityMismatch) -> int:
    _print_json(
        {
            'status': 'integrity_mismatch',
            'report_id': exc.report_id,
            'expected': exc.expected,
            'actual': exc.actual,
        }
    )
    return 2


def _output_dir(args: argparse.Namespace) -> Path:
    if args.output_dir:
        return Path(args.output_dir).expanduser()
    return get_settings().exports_root()


def cmd_render(args: argparse.Namespace) -> int:
    try:
        payload = coerce_payload(_load_json_arg(args.payload))
        content = coerce_content(_load_json_arg(args.content))
    except (OSError, ValueError) as exc:
        _print_json({'status': 'error', 'message': f'Invalid input: {exc}'})
        return 2

    rendered = render_report(payload, content)
    if args.no_save:
        _print_json({'checksum': rendered.checksum, 'markup': rendered.markup})
        return 0

    record = save_report(payload, content, rendered=rendered, name=args.name)
    _print_json(_report_snapshot(record))
    return 0


def cmd_show(args: argparse.Namespace) -> int:
    try:
        record = load_report(args.report_id)
    except IntegrityMismatch as exc:
        return _integrity_error(exc)
    if record is None:
        _print_json({'status': 'error', 'message': f'Report not found: {args.report_id}'})
        return 2

    if args.markup:
        sys.stdout.write(record.html_content)
        return 0
    snapshot = _report_snapshot(record)
    snapshot['content'] = record.content.model_dump(mode='json', exclude_none=True)
    _print_json(snapshot)
    return 0


def cmd_verify(args: argparse.Namespace) -> int:
    try:
        record = load_report(args.report_id)
    except IntegrityMismatch as exc:
        return _integrity_error(exc)
    if record is None:
        _print_json({'status': 'error', 'message': f'Report not found: {args.report_id}'})
        return 2

    _print_json({'status': 'ok', 'report_id': str(record.id), 'checksum': record.checksum})
    return 0


def cmd_list(args: argparse.Namespace) -> int:
    limit = args.limit if args.limit is not None else get_settings().history_limit
    try:
        records = list_reports(limit=limit, verify=True)
    except IntegrityMismatch as exc:
        return _integrity_error(exc)
    _print_json({'count': len(records), 'reports': [_report_snapshot(record) for record in records]})
    return 0


def cmd_export(args: argparse.Namespace) -> int:
    settings = get_settings()
    loader = build_loader(settings)

    if args.report_id:
        try:
            record = load_report(args.report_id)
        except IntegrityMismatch as exc:
            return _integrity_error(exc)
        if record is None:
            _print_json({'status': 'error', 'message': f'Report not found: {args.report_id}'})
            return 2
        pending = export_report(record, loader, settings=settings)
    else:
        records = list_reports(limit=settings.history_limit)
        pending = export_results(records, args.mode, loader, settings=settings)

    try:
        result = asyncio.run(pending)
    except IntegrityMismatch as exc:
        return _integrity_error(exc)
    except ExportUnavailable as exc:
        return _export_error(exc)

    path = result.write(_output_dir(args))
    if args.report_id:
        append_event(args.report_id, 'exported', filename=result.filename, pages=result.page_count)
    _print_json(
        {
            'status': 'ok',
            'filename': result.filename,
            'path': str(path),
            'pages': result.page_count,
            'checksum': result.document.checksum,
        }
    )
    return 0


def cmd_export_text(args: argparse.Namespace) -> int:
    try:
        text = sys.stdin.read() if args.input == '-' else Path(args.input).expanduser().read_text(encoding='utf-8')
    except OSError as exc:
        _print_json({'status': 'error', 'message': f'Cannot read input: {exc}'})
        return 2

    settings = get_settings()
    loader = build_loader(settings)
    try:
        result = asyncio.run(export_markdown(text, loader, title=args.title, settings=settings))
    except ExportUnavailable as exc:
        return _export_error(exc)

    path = result.write(_output_dir(args))
    _print_json({'status': 'ok', 'filename': result.filename, 'path': str(path), 'pages': result.page_count})
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='Compliance report renderer and PDF exporter')
    sub = parser.add_subparsers(dest='command', required=True)

    render = sub.add_parser('render', help='Render report markup and save it')
    render.add_argument('--payload', required=False, help='Filing details: JSON object, JSON file, or - for stdin')
    render.add_argument('--content', required=False, help='Generated content: JSON object or JSON file')
    render.add_argument('--name', required=False, help='Optional saved report name')
    render.add_argument('--no-save', action='store_true', help='Print the markup instead of saving')
    render.set_defaults(func=cmd_render)

    show = sub.add_parser('show', help='Show a saved report')
    show.add_argument('--report-id', required=True, help='Report ID')
    show.add_argument('--markup', action='store_true', help='Print the stored markup only')
    show.set_defaults(func=cmd_show)

    verify = sub.add_parser('verify', help='Recompute and compare a saved checksum')
    verify.add_argument('--report-id', required=True, help='Report ID')
    verify.set_defaults(func=cmd_verify)

    list_cmd = sub.add_parser('list', help='List saved reports, oldest first')
    list_cmd.add_argument('--limit', type=int, required=False)
    list_cmd.set_defaults(func=cmd_list)

    export = sub.add_parser('export', help='Export saved reports to PDF')
    target = export.add_mutually_exclusive_group(required=True)
    target.add_argument('--report-id', help='Export one saved report')
    target.add_argument('--mode', choices=list(EXPORT_MODES), help='Export the latest or all saved results')
    export.add_argument('--output-dir', required=False)
    export.set_defaults(func=cmd_export)

    export_text = sub.add_parser('export-text', help='Export a markdown result to PDF')
    export_text.add_argument('--input', required=True, help='Markdown file, or - for stdin')
    export_text.add_argument('--title', required=False)
    export_text.add_argument('--output-dir', required=False)
    export_text.set_defaults(func=cmd_export_text)

    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    _configure_logging()
    return int(args.func(args))


if __name__ == '__main__':
    raise SystemExit(main())
