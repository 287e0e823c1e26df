from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .types import BrandingConfig


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        case_sensitive=False,
        extra='ignore',
    )

    data_dir: Path = Field(default=Path('./data'))
    log_level: str = 'INFO'

    # Branding collaborator
    toolkit_name: str = Field(
        default='YourBizGuru Mini-Dashboard',
        validation_alias=AliasChoices('TOOLKIT_NAME', 'CURRENT_TOOLKIT_NAME'),
    )
    toolkit_icon_url: str = Field(
        default='assets/favicon.png',
        validation_alias=AliasChoices('TOOLKIT_ICON_URL', 'CURRENT_TOOLKIT_ICON', 'ICON_URL'),
    )
    brand_line: str = 'YourBizGuru.com'
    brand_code: str = 'YBG'

    # PDF export
    typography_version: str = '1.2.1'
    pdf_font_name: str = 'Helvetica'
    pdf_bold_font_name: str = 'Helvetica-Bold'
    icon_fetch_timeout_seconds: float = 10.0
    # relative icon paths resolve against this directory
    asset_root: Path = Field(default=Path('.'))
    # defaults to data_dir/exports
    export_dir: Path | None = None

    # Saved results shown in "all results" exports
    history_limit: int = 5

    def exports_root(self) -> Path:
        root = self.export_dir or (self.data_dir / 'exports')
        root.mkdir(parents=True, exist_ok=True)
        return root

    def branding(self) -> BrandingConfig:
        return BrandingConfig(
            toolkit_name=self.toolkit_name,
            icon_url=self.toolkit_icon_url,
            brand_line=self.brand_line,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    settings = Settings()
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    (settings.data_dir / 'reports').mkdir(parents=True, exist_ok=True)
    return settings
