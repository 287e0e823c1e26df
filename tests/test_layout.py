"""
Tests for report/layout.py

Validates:
- Greedy word wrap
- Widow/orphan page-break decisions
- Versioned typography profiles
"""

import pytest

from complireport.report.layout import (
    TYPOGRAPHY_PROFILES,
    BreakAction,
    decide_break,
    get_typography,
    lines_that_fit,
    wrap,
)


# ============================================================================
# WORD WRAP
# ============================================================================

def test_wrap_greedy():
    assert wrap("aaa bbb ccc", 7, len) == ["aaa bbb", "ccc"]


def test_wrap_fits_on_one_line():
    assert wrap("aaa bbb", 100, len) == ["aaa bbb"]


def test_wrap_long_word_gets_its_own_line():
    """A word wider than the line is never split."""
    assert wrap("a verylongword b", 5, len) == ["a", "verylongword", "b"]


def test_wrap_respects_explicit_newlines():
    assert wrap("first\nsecond line", 100, len) == ["first", "second line"]


def test_wrap_empty_text():
    assert wrap("", 100, len) == []
    assert wrap("   ", 100, len) == []


def test_wrap_collapses_whitespace():
    assert wrap("a   b\tc", 100, len) == ["a b c"]


# ============================================================================
# PAGE BREAKS
# ============================================================================

def test_block_that_fits_is_placed():
    decision = decide_break(line_count=5, line_height=16, remaining=80, splittable=True)
    assert decision.action is BreakAction.place
    assert decision.lines_here == 5


def test_five_lines_with_one_line_left_moves_whole_paragraph():
    decision = decide_break(line_count=5, line_height=16, remaining=16, splittable=True)
    assert decision.action is BreakAction.new_page
    assert decision.lines_here == 0


def test_five_lines_with_three_lines_left_splits_three_and_two():
    decision = decide_break(line_count=5, line_height=16, remaining=48, splittable=True)
    assert decision.action is BreakAction.split
    assert decision.lines_here == 3


def test_split_keeps_all_lines_that_fit():
    decision = decide_break(line_count=5, line_height=16, remaining=79, splittable=True)
    assert decision.action is BreakAction.split
    assert decision.lines_here == 4


def test_atomic_block_moves_to_new_page():
    decision = decide_break(line_count=3, line_height=16, remaining=40, splittable=False)
    assert decision.action is BreakAction.new_page


def test_single_line_paragraph_moves_to_new_page():
    decision = decide_break(line_count=1, line_height=16, remaining=10, splittable=True)
    assert decision.action is BreakAction.new_page


def test_oversized_block_at_page_top_is_split():
    """A block taller than a whole page splits instead of moving forever."""
    decision = decide_break(line_count=50, line_height=16, remaining=160, splittable=False, at_page_top=True)
    assert decision.action is BreakAction.split
    assert decision.lines_here == 10


def test_block_height_overrides_line_height():
    decision = decide_break(line_count=1, line_height=13, remaining=15, splittable=False, block_height=21)
    assert decision.action is BreakAction.new_page


def test_lines_that_fit():
    assert lines_that_fit(48, 16) == 3
    assert lines_that_fit(47.9, 16) == 2
    assert lines_that_fit(-5, 16) == 0
    with pytest.raises(ValueError):
        lines_that_fit(10, 0)


# ============================================================================
# TYPOGRAPHY PROFILES
# ============================================================================

def test_default_profile_is_latest():
    assert get_typography().version == "1.2.1"


def test_known_versions():
    assert set(TYPOGRAPHY_PROFILES) == {"1.0", "1.1", "1.2.1"}


def test_unknown_version_raises():
    with pytest.raises(ValueError):
        get_typography("9.9")


def test_footer_band_reserved():
    profile = get_typography("1.2.1")
    assert profile.body_bottom == profile.page_height - profile.footer_gap - profile.footer_height
    assert profile.body_height > 0
