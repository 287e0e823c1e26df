"""Export orchestration.

Every export awaits ``ResourceLoader.prepare`` exactly once and then runs
layout, the footer pass and the PDF replay synchronously. PDF bytes exist
only after the footer pass, so a cancelled ``prepare`` leaves nothing behind.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Sequence

from .adapters.resources import ResourceConfig, ResourceLoader
from .config import Settings, get_settings
from .errors import ExportUnavailable, ResourceError
from .report.assembler import ExportedDocument, PageAssembler, export_filename
from .report.blocks import Heading, LayoutBlock, Separator, collapse_separators, markdown_to_blocks, to_blocks
from .report.drawing import DrawingContext
from .report.markup import render_report
from .report.pdf_export import render_pdf
from .state import verify_report
from .types import ExportSuffix, GeneratedContent, ReportPayload, StoredReport, utcnow


logger = logging.getLogger(__name__)

EXPORT_MODES = ('latest', 'all')


@dataclass
class ExportResult:
    document: ExportedDocument
    pdf: bytes

    @property
    def filename(self) -> str:
        return self.document.filename

    @property
    def page_count(self) -> int:
        return self.document.page_count

    def write(self, output_dir: Path) -> Path:
        output_dir.mkdir(parents=True, exist_ok=True)
        path = output_dir / self.filename
        path.write_bytes(self.pdf)
        return path


def build_loader(settings: Settings | None = None, **kwargs) -> ResourceLoader:
    settings = settings or get_settings()
    cfg = ResourceConfig(
        regular_font=settings.pdf_font_name,
        bold_font=settings.pdf_bold_font_name,
        typography_version=settings.typography_version,
        icon_timeout_seconds=settings.icon_fetch_timeout_seconds,
        asset_root=settings.asset_root,
    )
    return ResourceLoader(cfg, **kwargs)


async def _prepare(loader: ResourceLoader, settings: Settings) -> DrawingContext:
    try:
        return await loader.prepare(settings.branding())
    except ResourceError as exc:
        # icon failures degrade inside prepare; anything that escapes is fatal
        logger.error('Export aborted, resources unavailable: %s', exc)
        raise ExportUnavailable(str(exc)) from exc


def _render(
    ctx: DrawingContext,
    blocks: Sequence[LayoutBlock],
    *,
    settings: Settings,
    suffix: ExportSuffix,
    checksum: str | None,
) -> ExportResult:
    generated_at = utcnow()
    filename = export_filename(
        settings.toolkit_name,
        suffix,
        brand_code=settings.brand_code,
        # file names carry the local calendar date; the header timestamp stays UTC
        on=generated_at.astimezone().date(),
    )
    assembler = PageAssembler(ctx, generated_at=generated_at, checksum=checksum)
    document = assembler.assemble(blocks, filename=filename)
    try:
        pdf = render_pdf(document, ctx)
    except ResourceError as exc:
        raise ExportUnavailable(str(exc)) from exc
    except Exception as exc:
        logger.exception('PDF replay failed for %s', filename)
        raise ExportUnavailable(f'{type(exc).__name__}: {exc}') from exc
    logger.info('Exported %s (%d page(s), %d bytes)', filename, document.page_count, len(pdf))
    return ExportResult(document=document, pdf=pdf)


async def export_report(
    record: StoredReport,
    loader: ResourceLoader,
    *,
    settings: Settings | None = None,
    suffix: ExportSuffix = ExportSuffix.report,
) -> ExportResult:
    """Export one saved report, stamping its stored checksum in the header.

    The record is verified first; ``IntegrityMismatch`` propagates unchanged.
    """
    settings = settings or get_settings()
    verify_report(record)
    ctx = await _prepare(loader, settings)
    blocks = to_blocks(record.content, record.payload)
    return _render(ctx, blocks, settings=settings, suffix=suffix, checksum=record.checksum)


async def export_content(
    payload: ReportPayload | None,
    content: GeneratedContent | None,
    loader: ResourceLoader,
    *,
    settings: Settings | None = None,
) -> ExportResult:
    """Render and export content that has not been saved yet."""
    settings = settings or get_settings()
    rendered = render_report(payload, content)
    ctx = await _prepare(loader, settings)
    blocks = to_blocks(content, payload)
    return _render(ctx, blocks, settings=settings, suffix=ExportSuffix.report, checksum=rendered.checksum)


def _combined_blocks(reports: Sequence[StoredReport]) -> list[LayoutBlock]:
    blocks: list[LayoutBlock] = []
    for record in reports:
        entry = to_blocks(record.content, record.payload)
        # each entry is introduced by its own name instead of the generic report title
        if entry and isinstance(entry[0], Heading):
            entry = entry[1:]
        blocks.append(Heading(1, record.name))
        blocks.extend(entry)
        blocks.append(Separator())
    return collapse_separators(blocks)


async def export_results(
    reports: Sequence[StoredReport],
    mode: str,
    loader: ResourceLoader,
    *,
    settings: Settings | None = None,
) -> ExportResult:
    """Export saved results, oldest first.

    ``latest`` exports only the newest report. ``all`` puts every report in
    one document, each under its own heading.
    """
    if mode not in EXPORT_MODES:
        raise ValueError(f'unknown export mode: {mode!r} (expected one of {", ".join(EXPORT_MODES)})')
    if not reports:
        raise ExportUnavailable('no saved results')
    settings = settings or get_settings()
    if mode == 'latest':
        return await export_report(reports[-1], loader, settings=settings, suffix=ExportSuffix.latest_result)

    for record in reports:
        verify_report(record)
    ctx = await _prepare(loader, settings)
    checksum = reports[0].checksum if len(reports) == 1 else None
    return _render(ctx, _combined_blocks(reports), settings=settings, suffix=ExportSuffix.all_results, checksum=checksum)


async def export_markdown(
    text: str,
    loader: ResourceLoader,
    *,
    title: str | None = None,
    settings: Settings | None = None,
) -> ExportResult:
    """Export a free-form markdown result."""
    settings = settings or get_settings()
    ctx = await _prepare(loader, settings)
    blocks: list[LayoutBlock] = []
    if title:
        blocks.append(Heading(1, title))
    blocks.extend(markdown_to_blocks(text))
    return _render(ctx, collapse_separators(blocks), settings=settings, suffix=ExportSuffix.report, checksum=None)
