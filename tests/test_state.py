"""
Tests for state.py and storage.py

Validates:
- Save/load round trip keeps markup and checksum byte-identical
- Tampered markup, content or markup file is reported as an integrity mismatch
- Listing order and limits
- Report id validation
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from complireport.errors import IntegrityMismatch
from complireport.report.fingerprint import fingerprint
from complireport.report.markup import render_report
from complireport.state import default_report_name, list_reports, load_report, save_report
from complireport.storage import events_path, markup_path, read_json, record_path, write_json_atomic
from complireport.types import GeneratedContent, ReportPayload, StoredReport


def _events(report_id):
    return [json.loads(line) for line in events_path(report_id).read_text(encoding="utf-8").splitlines()]


# ============================================================================
# ROUND TRIP
# ============================================================================

def test_round_trip(payload, content):
    record = save_report(payload, content)
    loaded = load_report(record.id)

    assert loaded.html_content == record.html_content
    assert loaded.checksum == record.checksum == fingerprint(loaded.html_content)
    assert loaded.payload == payload
    assert loaded.content == content


def test_markup_file_matches_record(payload, content):
    record = save_report(payload, content)
    with markup_path(record.id).open(encoding="utf-8", newline="") as f:
        assert f.read() == record.html_content


def test_save_uses_given_rendering(payload, content):
    rendered = render_report(payload, content)
    record = save_report(payload, content, rendered=rendered, name="Delaware AR")
    assert record.checksum == rendered.checksum
    assert record.created_at == rendered.created_at
    assert record.name == "Delaware AR"


def test_save_appends_event(payload, content):
    record = save_report(payload, content)
    events = _events(record.id)
    assert events[0]["event"] == "saved"
    assert events[0]["checksum"] == record.checksum


def test_record_accepts_camel_case_markup_key(payload, content):
    record = save_report(payload, content)
    raw = read_json(record_path(record.id))
    raw["htmlContent"] = raw.pop("html_content")
    assert StoredReport.model_validate(raw).html_content == record.html_content


# ============================================================================
# INTEGRITY
# ============================================================================

def test_tampered_markup_raises(payload, content):
    record = save_report(payload, content)
    raw = read_json(record_path(record.id))
    raw["html_content"] = raw["html_content"].replace("Acme", "Acne", 1)
    write_json_atomic(record_path(record.id), raw)

    with pytest.raises(IntegrityMismatch) as exc_info:
        load_report(record.id)
    assert exc_info.value.expected == record.checksum
    assert exc_info.value.report_id == str(record.id)
    assert _events(record.id)[-1]["event"] == "integrity_mismatch"


def test_tampered_content_raises(payload, content):
    record = save_report(payload, content)
    raw = read_json(record_path(record.id))
    raw["content"]["summary"] = "TAMPERED SUMMARY"
    write_json_atomic(record_path(record.id), raw)

    with pytest.raises(IntegrityMismatch) as exc_info:
        load_report(record.id)
    assert exc_info.value.expected == record.checksum
    assert exc_info.value.actual != record.checksum


def test_tampered_markup_file_raises(payload, content):
    record = save_report(payload, content)
    markup_path(record.id).write_text("<p>evil</p>", encoding="utf-8")

    with pytest.raises(IntegrityMismatch) as exc_info:
        load_report(record.id)
    assert exc_info.value.actual == fingerprint("<p>evil</p>")


def test_missing_markup_file_raises(payload, content):
    record = save_report(payload, content)
    markup_path(record.id).unlink()
    with pytest.raises(IntegrityMismatch):
        load_report(record.id)


def test_list_reports_verify_raises_on_tampered_record(payload, content):
    save_report(payload, content)
    record = save_report(payload, content)
    raw = read_json(record_path(record.id))
    raw["payload"]["entity_name"] = "Someone Else LLC"
    write_json_atomic(record_path(record.id), raw)

    assert len(list_reports()) == 2
    with pytest.raises(IntegrityMismatch):
        list_reports(verify=True)


def test_save_rejects_rendering_of_other_content(payload, content):
    rendered = render_report(payload, GeneratedContent())
    with pytest.raises(ValueError):
        save_report(payload, content, rendered=rendered)


def test_tampered_markup_loads_without_verification(payload, content):
    record = save_report(payload, content)
    raw = read_json(record_path(record.id))
    raw["html_content"] += " "
    write_json_atomic(record_path(record.id), raw)
    assert load_report(record.id, verify=False).html_content.endswith(" ")


# ============================================================================
# LOOKUP AND LISTING
# ============================================================================

def test_unknown_report_returns_none():
    assert load_report("00000000-0000-0000-0000-000000000000") is None


def test_invalid_report_id_returns_none():
    assert load_report("../../etc/passwd") is None


def test_list_reports_oldest_first():
    base = datetime(2025, 1, 1, tzinfo=timezone.utc)
    names = ["third", "first", "second"]
    offsets = [2, 0, 1]
    for name, offset in zip(names, offsets):
        rendered = render_report(ReportPayload(), GeneratedContent(), created_at=base + timedelta(days=offset))
        save_report(ReportPayload(), GeneratedContent(), rendered=rendered, name=name)

    assert [record.name for record in list_reports()] == ["first", "second", "third"]
    assert [record.name for record in list_reports(limit=2)] == ["second", "third"]
    assert list_reports(limit=0) == []


def test_list_reports_skips_unreadable_records(payload, content):
    record = save_report(payload, content)
    broken = record_path("11111111-1111-1111-1111-111111111111")
    broken.write_text("{not json", encoding="utf-8")
    assert [item.id for item in list_reports()] == [record.id]


# ============================================================================
# NAMES
# ============================================================================

def test_default_report_name(payload):
    assert default_report_name(payload) == "Annual Report for LLC (Acme Widgets LLC) - Delaware"


def test_default_report_name_empty():
    assert default_report_name(ReportPayload()) == "Compliance Filing"
