"""Tests for shared text and time helpers."""

from datetime import timedelta, timezone

import pytest

from tracker.app.core.utils import describe_age, normalize_text, utc_now


class TestDescribeAge:
    """Test suite for describe_age."""

    @pytest.mark.parametrize(
        ("age", "expected"),
        [
            (timedelta(0), "Just now"),
            (timedelta(seconds=59), "Just now"),
            (timedelta(minutes=1), "1m ago"),
            (timedelta(minutes=59, seconds=59), "59m ago"),
            (timedelta(hours=1), "1h ago"),
            (timedelta(hours=23, minutes=59), "23h ago"),
            (timedelta(hours=24), "1d ago"),
            (timedelta(days=9, hours=5), "9d ago"),
        ],
    )
    def test_labels(self, age, expected):
        assert describe_age(age) == expected

    def test_negative_age_is_just_now(self):
        """Clock skew never produces a negative label."""
        assert describe_age(timedelta(minutes=-10)) == "Just now"


class TestNormalizeText:
    def test_non_breaking_spaces(self):
        assert normalize_text("Teacher\u00a0:\u00a0Jane\u00a0Doe") == "Teacher : Jane Doe"

    def test_collapses_runs_and_strips(self):
        assert normalize_text("  Lectures \n\t Delivered  ") == "Lectures Delivered"

    def test_empty(self):
        assert normalize_text("   ") == ""


def test_utc_now_is_aware():
    now = utc_now()
    assert now.tzinfo is not None
    assert now.utcoffset() == timedelta(0)
    assert now.tzinfo == timezone.utc
