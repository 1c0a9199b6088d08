"""Extraction of the per-subject attendance summary ("common page")."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from bs4 import BeautifulSoup, Tag
from pydantic import ValidationError

from tracker.app.core.logging import get_logger
from tracker.app.core.utils import normalize_text
from tracker.app.exceptions import MarkupStructureError
from tracker.app.schemas import SubjectAttendance
from tracker.app.services.extractor.patterns import LineClassifier

logger = get_logger(__name__)

COUNT_FIELDS = (
    "lectures_delivered",
    "lectures_attended",
    "lectures_absent",
    "duty_leave_used",
    "medical_leave_used",
    "approved_duty_leave",
    "approved_medical_leave_quota",
)


def parse_soup(markup: str, parser: str = "lxml") -> BeautifulSoup:
    return BeautifulSoup(markup, parser)


def strip_parentheses(code: str) -> str:
    return code.replace("(", "").replace(")", "").strip()


class SummaryExtractor:
    """Turns the summary markup into SubjectAttendance records.

    Subjects live in ``.tt-box-new`` containers. The name and code are the
    first two ``span`` elements of ``.tt-period-number``; every
    ``.tt-period-name`` element is a labeled detail line.

    A subject whose structure cannot be read is skipped and logged; the
    rest of the batch is still returned.
    """

    CONTAINER_SELECTOR = ".tt-box-new"
    HEADER_SELECTOR = ".tt-period-number"
    DETAIL_SELECTOR = ".tt-period-name"

    def __init__(
        self,
        classifier: LineClassifier | None = None,
        parser: str = "lxml",
    ) -> None:
        self.classifier = classifier or LineClassifier()
        self.parser = parser

    def extract(self, markup: str) -> list[SubjectAttendance]:
        soup = parse_soup(markup, self.parser)
        containers = soup.select(self.CONTAINER_SELECTOR)

        subjects: list[SubjectAttendance] = []
        for index, container in enumerate(containers):
            try:
                subjects.append(self.extract_subject(container, index))
            except MarkupStructureError as exc:
                logger.warning(
                    f"Skipping summary subject: {exc.detail}",
                    extra={"subject_index": index},
                )

        logger.debug(
            f"Extracted {len(subjects)}/{len(containers)} summary subjects"
        )
        return subjects

    def extract_subject(self, container: Tag, index: int = 0) -> SubjectAttendance:
        """Extract one subject container.

        Raises:
            MarkupStructureError: If the header or a required value is missing.
        """
        header = container.select_one(self.HEADER_SELECTOR)
        if header is None:
            raise MarkupStructureError("subject header not found", index)

        spans = header.find_all("span")
        name = normalize_text(spans[0].get_text(" ")) if spans else ""
        if not name:
            raise MarkupStructureError("subject name not found", index)
        code = strip_parentheses(normalize_text(spans[1].get_text(" "))) if len(spans) > 1 else ""

        raw: dict[str, str | None] = {}
        for line in container.select(self.DETAIL_SELECTOR):
            text = normalize_text(line.get_text(" "))
            if not text:
                continue
            pattern = self.classifier.classify(text)
            if pattern is None:
                continue
            for field_name, value in pattern.apply(text).items():
                # Repeated lines never overwrite the first reading
                raw.setdefault(field_name, value)

        values: dict[str, object] = {
            "subject_name": name,
            "subject_code": code,
            "teacher": raw.get("teacher"),
            "session_start": raw.get("session_start"),
            "session_end": raw.get("session_end"),
            "reported_percentage": self._to_percentage(raw.get("reported_percentage"), index),
        }
        for field_name in COUNT_FIELDS:
            if field_name in raw:
                values[field_name] = self._to_count(field_name, raw[field_name], index)

        try:
            return SubjectAttendance(**values)
        except ValidationError as exc:
            raise MarkupStructureError(f"invalid subject record: {exc}", index) from exc

    @staticmethod
    def _to_count(field_name: str, value: str | None, index: int) -> int:
        if value is None or not value.isdecimal():
            raise MarkupStructureError(
                f"{field_name} is not a count: {value!r}", index
            )
        try:
            return int(value)
        except ValueError as exc:
            raise MarkupStructureError(
                f"{field_name} is not a count: {value!r}", index
            ) from exc

    @staticmethod
    def _to_percentage(value: str | None, index: int) -> Decimal | None:
        if value is None:
            return None
        cleaned = re.sub(r"\s*%$", "", value)
        try:
            return Decimal(cleaned)
        except InvalidOperation:
            logger.warning(
                f"Unreadable percentage {value!r}, leaving it empty",
                extra={"subject_index": index},
            )
            return None
