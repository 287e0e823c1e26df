"""
Tests for report/markup.py and report/outline.py

Validates:
- Deterministic output
- Placeholder completeness for absent and empty fields
- HTML escaping of user-supplied strings
- Section order and defaults
- Content coercion recovering from malformed fields
"""

import re

import pytest
from pydantic import ValidationError

from complireport.report.fingerprint import fingerprint
from complireport.report.markup import render_markup, render_report
from complireport.report.outline import PENDING, build_outline, format_deadline
from complireport.types import GeneratedContent, RenderedReport, ReportPayload, coerce_content, coerce_payload


SECTION_TITLES = [
    "Executive Compliance Summary",
    "Filing Requirements Checklist",
    "Compliance Timeline",
    "Risk Matrix",
    "Strategic Recommendations",
    "Official References",
]


def _section(markup, key):
    match = re.search(rf'<section class="report-section" data-section="{key}">(.*?)</section>', markup, re.S)
    assert match, f"section {key} missing"
    return match.group(1)


# ============================================================================
# DETERMINISM
# ============================================================================

def test_render_is_byte_identical(payload, content):
    assert render_markup(payload, content) == render_markup(payload, content)


def test_render_report_checksum_matches_markup(payload, content):
    rendered = render_report(payload, content)
    assert rendered.checksum == fingerprint(rendered.markup)


def test_appending_to_summary_changes_checksum(payload, content):
    longer = content.model_copy(update={"summary": content.summary + "x"})
    assert render_report(payload, content).checksum != render_report(payload, longer).checksum


def test_rendered_report_stamps_checksum():
    assert RenderedReport(markup="a").checksum == "0002b606"


def test_rendered_report_rejects_wrong_checksum():
    with pytest.raises(ValidationError):
        RenderedReport(markup="a", checksum="00001505")


def test_created_at_does_not_affect_markup(payload, content):
    first = render_report(payload, content)
    second = render_report(payload, content)
    assert first.markup == second.markup
    assert first.checksum == second.checksum


# ============================================================================
# PLACEHOLDERS
# ============================================================================

def test_empty_inputs_render_every_section():
    """Completely empty payload and content still yield a complete report."""
    markup = render_markup(ReportPayload(), GeneratedContent())
    for title in SECTION_TITLES:
        assert f"<h2>{title}</h2>" in markup
    assert markup.count(PENDING) >= 5 + len(SECTION_TITLES)


def test_none_inputs_behave_like_empty_inputs():
    assert render_markup(None, None) == render_markup(ReportPayload(), GeneratedContent())


def test_absent_field_renders_pending_notice():
    markup = render_markup(ReportPayload(), GeneratedContent())
    body = _section(markup, "checklist")
    assert '<p class="pending">[Pending Input] Requirements checklist has not been generated yet.</p>' in body
    assert "<li" not in body


def test_empty_checklist_renders_exactly_one_item():
    markup = render_markup(ReportPayload(), GeneratedContent(checklist=[]))
    body = _section(markup, "checklist")
    assert body.count("<li") == 1
    assert PENDING in body


def test_empty_timeline_renders_placeholder_row():
    markup = render_markup(ReportPayload(), GeneratedContent(timeline=[]))
    body = _section(markup, "timeline")
    assert body.count('<tr class="placeholder">') == 1
    assert "[Timeline unavailable]" in body
    assert "Please provide filing deadline to generate timeline" in body


def test_empty_risk_matrix_renders_default_risk():
    markup = render_markup(ReportPayload(), GeneratedContent(risk_matrix=[]))
    body = _section(markup, "risk_matrix")
    assert "Late filing" in body
    assert "<td>High</td>" in body


def test_missing_metadata_value_is_pending():
    markup = render_markup(ReportPayload(entity_name="Acme"), GeneratedContent())
    assert "<dt>Entity Name</dt><dd>Acme</dd>" in markup
    assert f'<dt>Jurisdiction</dt><dd><span class="pending">{PENDING}</span></dd>' in markup


def test_blank_timeline_cell_is_pending(payload):
    content = GeneratedContent.model_validate({"timeline": [{"milestone": "Submit"}]})
    body = _section(render_markup(payload, content), "timeline")
    assert "<td>Submit</td>" in body
    assert body.count(PENDING) == 3


def test_references_carry_disclaimer(payload, content):
    body = _section(render_markup(payload, content), "references")
    assert '<p class="note"><strong>Disclaimer:</strong>' in body


# ============================================================================
# ESCAPING
# ============================================================================

def test_user_strings_are_escaped():
    payload = ReportPayload(entity_name='<script>alert("x")</script>')
    content = GeneratedContent(checklist=["Tom & Jerry's filing"])
    markup = render_markup(payload, content)
    assert "<script>" not in markup
    assert "&lt;script&gt;alert(&quot;x&quot;)&lt;/script&gt;" in markup
    assert "Tom &amp; Jerry&#x27;s filing" in markup


def test_script_in_checklist_item_stays_one_item(payload):
    content = GeneratedContent(checklist=["Confirm registered agent", '<script>"x"</script>', "Pay franchise tax"])
    body = _section(render_markup(payload, content), "checklist")
    assert "<script>" not in body
    assert "&lt;script&gt;&quot;x&quot;&lt;/script&gt;" in body
    assert body.count("<ul>") == 1
    assert len(re.findall(r"<li[ >]", body)) == 3


def test_newlines_become_line_breaks():
    markup = render_markup(ReportPayload(), GeneratedContent(checklist=["line one\nline two"]))
    assert "line one<br/>line two" in markup


# ============================================================================
# ORDER AND FORMATTING
# ============================================================================

def test_sections_in_fixed_order(payload, content):
    markup = render_markup(payload, content)
    positions = [markup.index(f"<h2>{title}</h2>") for title in SECTION_TITLES]
    assert positions == sorted(positions)


def test_summary_paragraphs_split_on_blank_lines(payload, content):
    body = _section(render_markup(payload, content), "summary")
    assert body.count("<p>") == 2


def test_deadline_formatting():
    assert format_deadline("2025-06-01").text == "Jun 1, 2025"
    assert format_deadline("next Friday").text == "next Friday"
    assert format_deadline("2025-02-30").text == "2025-02-30"
    assert format_deadline("").pending


def test_outline_has_six_sections(payload, content):
    outline = build_outline(payload, content)
    assert [section.title for section in outline.sections] == SECTION_TITLES


# ============================================================================
# COERCION
# ============================================================================

def test_malformed_field_becomes_absent():
    """A malformed field falls back to its placeholder; the rest survive."""
    content = coerce_content({"checklist": "not a list", "recommendations": ["File early"]})
    assert content.checklist is None
    assert content.recommendations == ["File early"]


def test_coerce_content_accepts_camel_case():
    content = coerce_content({"riskMatrix": [{"risk": "Penalty"}]})
    assert content.risk_matrix[0].risk == "Penalty"


def test_coerce_content_ignores_non_dict():
    assert coerce_content(None) == GeneratedContent()


def test_coerce_payload_stringifies_scalars():
    payload = coerce_payload({"entityName": "Acme", "deadline": 20250601, "jurisdiction": {"bad": 1}})
    assert payload.entity_name == "Acme"
    assert payload.deadline == "20250601"
    assert payload.jurisdiction is None
