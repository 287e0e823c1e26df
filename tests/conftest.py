import sys
from pathlib import Path

import pytest

_root = Path(__file__).parent.parent
if str(_root) not in sys.path:
    sys.path.insert(0, str(_root))

from complireport.config import get_settings
from complireport.report.drawing import DrawingContext
from complireport.report.layout import get_typography
from complireport.types import BrandingConfig, GeneratedContent, ReportPayload


# ============================================================================
# ENVIRONMENT ISOLATION
# ============================================================================

@pytest.fixture(autouse=True)
def isolated_settings(tmp_path, monkeypatch):
    """Point every test at its own data directory."""
    monkeypatch.setenv("DATA_DIR", str(tmp_path / "data"))
    monkeypatch.setenv("TOOLKIT_NAME", "Filing Deadline Tracker")
    monkeypatch.setenv("TOOLKIT_ICON_URL", "")
    monkeypatch.setenv("BRAND_LINE", "YourBizGuru.com")
    get_settings.cache_clear()
    yield get_settings()
    get_settings.cache_clear()


# ============================================================================
# DRAWING CONTEXT WITHOUT A DRAWING LIBRARY
# ============================================================================

def fixed_width_measurer(font, size):
    """Every character is half an em wide."""
    def measure(text):
        return len(text) * size * 0.5
    return measure


@pytest.fixture
def branding():
    return BrandingConfig(
        toolkit_name="Filing Deadline Tracker",
        icon_url="",
        brand_line="YourBizGuru.com",
    )


@pytest.fixture
def drawing_ctx(branding):
    """A drawing context that lays out with fixed-width metrics."""
    return DrawingContext(
        branding=branding,
        profile=get_typography("1.2.1"),
        regular_font="Helvetica",
        bold_font="Helvetica-Bold",
        measurer=fixed_width_measurer,
    )


# ============================================================================
# REPORT INPUTS
# ============================================================================

@pytest.fixture
def payload():
    return ReportPayload(
        entity_name="Acme Widgets LLC",
        entity_type="LLC",
        jurisdiction="Delaware",
        filing_type="Annual Report",
        deadline="2025-06-01",
    )


@pytest.fixture
def content():
    return GeneratedContent.model_validate({
        "summary": "Acme must file its Delaware annual report.\n\nLate filing incurs a $200 penalty.",
        "checklist": ["Confirm registered agent", "Pay franchise tax"],
        "timeline": [
            {"milestone": "Gather officer list", "owner": "Operations", "dueDate": "2025-05-01", "notes": "HR export"},
            {"milestone": "Submit report", "owner": "Finance", "due_date": "2025-06-01"},
        ],
        "riskMatrix": [
            {"risk": "Missed deadline", "severity": "High", "likelihood": "Low", "mitigation": "Calendar reminders"},
        ],
        "recommendations": ["File two weeks early", "Keep receipts"],
        "references": ["https://corp.delaware.gov/paytaxes/"],
    })
