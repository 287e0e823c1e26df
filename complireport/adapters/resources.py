from __future__ import annotations

import asyncio
import importlib
import logging
from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from types import ModuleType
from typing import Any
from urllib.parse import unquote, urlparse

import httpx

from ..errors import ResourceError
from ..report.drawing import DrawingContext
from ..report.layout import Measure, TypographyProfile, get_typography
from ..types import BrandingConfig


logger = logging.getLogger(__name__)


@dataclass
class ResourceConfig:
    regular_font: str = 'Helvetica'
    bold_font: str = 'Helvetica-Bold'
    typography_version: str = '1.2.1'
    icon_timeout_seconds: float = 10.0
    # base directory for relative icon paths
    asset_root: Path | None = None


def _import_drawing_modules() -> tuple[ModuleType, ModuleType, ModuleType]:
    return (
        importlib.import_module('reportlab.pdfgen.canvas'),
        importlib.import_module('reportlab.pdfbase.pdfmetrics'),
        importlib.import_module('reportlab.lib.utils'),
    )


@dataclass
class DrawingLibrary:
    canvas: ModuleType
    pdfmetrics: ModuleType
    image_reader: type


class ResourceLoader:
    """Loads what an export needs before layout starts.

    Construct one per process and pass it by reference. The drawing library is
    imported on the first ``prepare`` and reused afterwards; the branding
    icon is fetched on every call since branding may change between exports.
    """

    def __init__(self, cfg: ResourceConfig | None = None, *, transport: httpx.AsyncBaseTransport | None = None):
        self.cfg = cfg or ResourceConfig()
        self._transport = transport
        self._library: DrawingLibrary | None = None

    @property
    def library_loaded(self) -> bool:
        return self._library is not None

    @property
    def library(self) -> DrawingLibrary:
        if self._library is None:
            raise ResourceError('drawing library', 'not loaded; await prepare() first', fatal=True)
        return self._library

    async def prepare(self, branding: BrandingConfig, *, profile: TypographyProfile | None = None) -> DrawingContext:
        if profile is None:
            try:
                profile = get_typography(self.cfg.typography_version)
            except ValueError as exc:
                raise ResourceError('typography', str(exc), fatal=True) from exc
        library = await self._load_library()
        icon = await self._load_icon(library, branding.icon_url)
        return DrawingContext(
            branding=branding,
            profile=profile,
            regular_font=self.cfg.regular_font,
            bold_font=self.cfg.bold_font,
            measurer=self._measurer(library),
            icon=icon,
            library=library,
        )

    def _measurer(self, library: DrawingLibrary):
        def measurer(font: str, size: float) -> Measure:
            def measure(text: str) -> float:
                return library.pdfmetrics.stringWidth(text, font, size)

            return measure

        return measurer

    async def _load_library(self) -> DrawingLibrary:
        if self._library is not None:
            return self._library
        try:
            canvas, pdfmetrics, utils = await asyncio.to_thread(_import_drawing_modules)
            for font in (self.cfg.regular_font, self.cfg.bold_font):
                pdfmetrics.getFont(font)
        except Exception as exc:
            raise ResourceError('drawing library', f'{type(exc).__name__}: {exc}', fatal=True) from exc
        self._library = DrawingLibrary(canvas=canvas, pdfmetrics=pdfmetrics, image_reader=utils.ImageReader)
        logger.info('Drawing library ready (fonts: %s, %s)', self.cfg.regular_font, self.cfg.bold_font)
        return self._library

    async def _load_icon(self, library: DrawingLibrary, icon_url: str) -> Any | None:
        source = str(icon_url or '').strip()
        if not source:
            return None
        try:
            data = await self._fetch_icon_bytes(source)
            return self._decode_icon(library, data)
        except ResourceError as exc:
            logger.warning('Branding icon unavailable; leaving icon area blank (%s)', exc)
        except Exception as exc:
            logger.warning('Branding icon unavailable; leaving icon area blank (%s: %s)', type(exc).__name__, exc)
        return None

    async def _fetch_icon_bytes(self, source: str) -> bytes:
        parsed = urlparse(source)
        if parsed.scheme in {'http', 'https'}:
            timeout = max(1.0, float(self.cfg.icon_timeout_seconds))
            async with httpx.AsyncClient(timeout=timeout, transport=self._transport, follow_redirects=True) as client:
                response = await client.get(source)
                response.raise_for_status()
                if not response.content:
                    raise ResourceError('icon', f'empty response from {source}', fatal=False)
                return response.content

        path = Path(unquote(parsed.path)) if parsed.scheme == 'file' else Path(source)
        if not path.is_absolute() and self.cfg.asset_root is not None:
            path = self.cfg.asset_root / path
        if not path.is_file():
            raise ResourceError('icon', f'file not found: {path}', fatal=False)
        return await asyncio.to_thread(path.read_bytes)

    def _decode_icon(self, library: DrawingLibrary, data: bytes) -> Any:
        try:
            reader = library.image_reader(BytesIO(data))
            width, height = reader.getSize()
        except Exception as exc:
            raise ResourceError('icon', f'unreadable image: {exc}', fatal=False) from exc
        if width <= 0 or height <= 0:
            raise ResourceError('icon', 'image has no pixels', fatal=False)
        return reader
