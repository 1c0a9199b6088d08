"""Tests for summary markup extraction and detail line patterns."""

from decimal import Decimal

import pytest

from tracker.app.services.extractor import LineClassifier, SummaryExtractor
from tracker.app.services.extractor.patterns import (
    COUNT_SHAPE,
    DateRangePattern,
    LeavePattern,
    after_colon,
    nth_shape,
    strip_label,
)


def _container(name="Maths", code="(MA101)", lines=()):
    spans = "".join(f"<span>{part}</span>" for part in (name, code) if part is not None)
    details = "".join(f'<div class="tt-period-name">{line}</div>' for line in lines)
    return (
        '<div class="tt-box-new">'
        f'<div class="tt-period-number">{spans}</div>'
        f"{details}"
        "</div>"
    )


class TestTierHelpers:
    """Tests for the three value-reading tiers."""

    def test_after_colon(self):
        assert after_colon("delivered", r"\d+", "Delivered : 20") == "20"

    def test_after_colon_missing(self):
        assert after_colon("delivered", r"\d+", "Delivered 20") is None

    def test_nth_shape(self):
        assert nth_shape(COUNT_SHAPE, "DL 3 ML 4", 1) == "4"
        assert nth_shape(COUNT_SHAPE, "DL 3", 1) is None

    def test_strip_label(self):
        assert strip_label("teacher", "Teacher Jane Doe") == "Jane Doe"
        assert strip_label("teacher", "Teacher :") is None


class TestLineClassifier:
    """Tests for routing detail lines to patterns."""

    def setup_method(self):
        self.classifier = LineClassifier()

    @pytest.mark.parametrize(
        "line,expected",
        [
            ("Teacher : Jane Doe", "teacher"),
            ("From : 01 Jul 2025 TO : 28 Nov 2025", "session"),
            ("Delivered : 20", "lectures_delivered"),
            ("Attended : 14", "lectures_attended"),
            ("Absent : 3", "lectures_absent"),
            ("DL : 2 ML : 1", "leaves"),
            ("Total Percentage : 85.00 %", "reported_percentage"),
            ("Total Approved DL : 2", "approved_duty_leave"),
            ("Total Approved ML : 3", "approved_medical_leave_quota"),
        ],
    )
    def test_classify(self, line, expected):
        pattern = self.classifier.classify(line)
        assert pattern is not None
        assert pattern.name == expected

    def test_unknown_line(self):
        assert self.classifier.classify("Semester 3") is None

    def test_total_is_not_a_date_range_end(self):
        """'Total' must not read as the 'to' of a date range."""
        pattern = self.classifier.classify("Total Approved DL : 2")
        assert not isinstance(pattern, DateRangePattern)


class TestDateRangePattern:
    def test_labeled_range(self):
        result = DateRangePattern().apply("From : 01 Jul 2025 TO : 28 Nov 2025")
        assert result == {"session_start": "01 Jul 2025", "session_end": "28 Nov 2025"}

    def test_unlabeled_dates(self):
        result = DateRangePattern().apply("From 01 Jul 2025 to 28 Nov 2025")
        assert result == {"session_start": "01 Jul 2025", "session_end": "28 Nov 2025"}

    def test_verbatim_fallback(self):
        result = DateRangePattern().apply("From : July to November")
        assert result["session_start"] == "July - November"
        assert result["session_end"] is None


class TestLeavePattern:
    def test_labeled(self):
        assert LeavePattern().apply("DL : 2 ML : 1") == {
            "duty_leave_used": "2",
            "medical_leave_used": "1",
        }

    def test_positional(self):
        assert LeavePattern().apply("DL 4 ML 0") == {
            "duty_leave_used": "4",
            "medical_leave_used": "0",
        }


class TestSummaryExtractor:
    """Tests for SummaryExtractor.extract."""

    def setup_method(self):
        self.extractor = SummaryExtractor()

    def test_extracts_all_fields(self, summary_markup):
        subjects = self.extractor.extract(summary_markup)
        assert len(subjects) == 2

        first = subjects[0]
        assert first.subject_name == "Data Structures"
        assert first.subject_code == "CS201"
        assert first.teacher == "Jane Doe"
        assert first.session_start == "01 Jul 2025"
        assert first.session_end == "28 Nov 2025"
        assert first.duration == "01 Jul 2025 - 28 Nov 2025"
        assert first.lectures_delivered == 20
        assert first.lectures_attended == 14
        assert first.lectures_absent == 3
        assert first.duty_leave_used == 2
        assert first.medical_leave_used == 1
        assert first.approved_duty_leave == 2
        assert first.approved_medical_leave_quota == 3
        assert first.reported_percentage == Decimal("85.00")

    def test_non_breaking_spaces_are_normalized(self, summary_markup):
        second = self.extractor.extract(summary_markup)[1]
        assert second.teacher == "John Smith"
        assert second.lectures_delivered == 20
        assert second.lectures_attended == 13

    def test_missing_lines_default_to_zero(self, summary_markup):
        second = self.extractor.extract(summary_markup)[1]
        assert second.lectures_absent == 0
        assert second.approved_duty_leave == 0
        assert second.session_start is None
        assert second.reported_percentage is None

    @pytest.mark.parametrize("line", ["TEACHER:  Jane Doe", "Teacher : Jane Doe"])
    def test_teacher_label_variants(self, line):
        subjects = self.extractor.extract(_container(lines=[line, "Delivered : 1"]))
        assert subjects[0].teacher == "Jane Doe"

    def test_value_without_colon(self):
        subjects = self.extractor.extract(_container(lines=["Delivered 12", "Attended 9"]))
        assert subjects[0].lectures_delivered == 12
        assert subjects[0].lectures_attended == 9

    def test_first_value_wins(self):
        subjects = self.extractor.extract(
            _container(lines=["Delivered : 12", "Delivered : 99"])
        )
        assert subjects[0].lectures_delivered == 12

    def test_missing_code(self):
        subjects = self.extractor.extract(_container(code=None, lines=["Delivered : 1"]))
        assert subjects[0].subject_code == ""

    def test_broken_subject_is_skipped(self):
        markup = (
            '<div class="tt-box-new"><div>no header here</div></div>'
            + _container(name="Physics", lines=["Delivered : 10"])
        )
        subjects = self.extractor.extract(markup)
        assert [s.subject_name for s in subjects] == ["Physics"]

    def test_unreadable_count_skips_subject(self):
        markup = _container(name="Chemistry", lines=["Delivered : many"]) + _container(
            name="Biology", lines=["Delivered : 4"]
        )
        subjects = self.extractor.extract(markup)
        assert [s.subject_name for s in subjects] == ["Biology"]

    def test_superscript_digit_count_skips_subject(self):
        markup = _container(name="Chemistry", lines=["Delivered \u00b2"]) + _container(
            name="Maths", code="(MA101)", lines=["Delivered : 4"]
        )
        subjects = self.extractor.extract(markup)
        assert [s.subject_code for s in subjects] == ["MA101"]

    def test_unreadable_percentage_is_left_empty(self):
        subjects = self.extractor.extract(_container(lines=["Total Percentage : n/a"]))
        assert subjects[0].reported_percentage is None

    def test_no_containers(self):
        assert self.extractor.extract("<html><body><p>Session expired</p></body></html>") == []

    def test_deterministic(self, summary_markup):
        assert self.extractor.extract(summary_markup) == self.extractor.extract(summary_markup)
