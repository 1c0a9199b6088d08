"""Extraction of the per-lecture attendance register."""

from __future__ import annotations

import re
from decimal import Decimal, InvalidOperation

from bs4 import NavigableString, Tag

from tracker.app.core.logging import get_logger
from tracker.app.core.utils import normalize_text
from tracker.app.exceptions import MarkupStructureError
from tracker.app.schemas import LectureStatus, RegisterEntry, SubjectRegister
from tracker.app.services.extractor.summary import parse_soup, strip_parentheses

logger = get_logger(__name__)

# Trailing "Total" and "%age" columns after the lecture columns
SUMMARY_COLUMNS = 2


def split_on_breaks(cell: Tag) -> list[str]:
    """Split a cell's text on ``<br>`` elements, dropping empty parts.

    Examples:
        ``<th>1<br>01-07<br>3</th>`` -> ``["1", "01-07", "3"]``
    """
    parts: list[str] = []
    current: list[str] = []
    for node in cell.descendants:
        if isinstance(node, Tag) and node.name == "br":
            parts.append("".join(current))
            current = []
        elif isinstance(node, NavigableString):
            current.append(str(node))
    parts.append("".join(current))
    return [text for text in (normalize_text(part) for part in parts) if text]


def lecture_header(parts: list[str], position: int) -> tuple[int, str, str] | None:
    """Read ``number/date/period`` from a split lecture header.

    Missing or non-numeric lecture numbers fall back to the 1-based column
    position.
    """
    if not parts:
        return None
    if len(parts) == 1:
        return position, "", parts[0]
    number = position
    if parts[0].isdecimal():
        try:
            number = int(parts[0])
        except ValueError:
            logger.debug(f"Lecture number {parts[0]!r} unreadable, using column {position}")
    period = parts[2] if len(parts) > 2 else ""
    return number, parts[1], period


class RegisterExtractor:
    """Turns the register markup into SubjectRegister records.

    The register is one ``table`` whose ``thead``/``tbody`` pairs each hold
    a subject. The header row carries the subject block followed by one
    cell per lecture; the first body row carries one status per lecture.
    When the two counts disagree only the common prefix is kept.
    """

    def __init__(self, parser: str = "lxml") -> None:
        self.parser = parser

    def extract(self, markup: str) -> list[SubjectRegister]:
        soup = parse_soup(markup, self.parser)
        table = soup.find("table")
        if table is None:
            logger.warning("No register table found in markup")
            return []

        heads = table.find_all("thead")
        bodies = table.find_all("tbody")
        if len(heads) != len(bodies):
            logger.debug(
                f"Register has {len(heads)} thead and {len(bodies)} tbody elements"
            )

        registers: list[SubjectRegister] = []
        for index, (head, body) in enumerate(zip(heads, bodies)):
            try:
                registers.append(self.extract_subject(head, body, index))
            except MarkupStructureError as exc:
                logger.warning(
                    f"Skipping register subject: {exc.detail}",
                    extra={"subject_index": index},
                )

        logger.debug(f"Extracted {len(registers)} register subjects")
        return registers

    def extract_subject(self, head: Tag, body: Tag, index: int = 0) -> SubjectRegister:
        """Extract one thead/tbody pair.

        Raises:
            MarkupStructureError: If the header row or data row is missing.
        """
        rows = head.find_all("tr")
        if not rows:
            raise MarkupStructureError("register header row not found", index)
        headers = rows[-1].find_all("th")
        if not headers:
            raise MarkupStructureError("register header cells not found", index)

        subject_parts = split_on_breaks(headers[0])
        if not subject_parts:
            raise MarkupStructureError("register subject block is empty", index)
        name = subject_parts[0]
        code = strip_parentheses(subject_parts[1]) if len(subject_parts) > 1 else ""

        lectures = []
        for position, cell in enumerate(headers[1:-SUMMARY_COLUMNS], start=1):
            parsed = lecture_header(split_on_breaks(cell), position)
            if parsed is not None:
                lectures.append(parsed)

        data_row = body.find("tr")
        if data_row is None:
            raise MarkupStructureError("register data row not found", index)
        cells = [normalize_text(cell.get_text(" ")) for cell in data_row.find_all("td")]

        statuses = cells[1:-SUMMARY_COLUMNS]
        total: str | None = None
        percentage: Decimal | None = None
        if len(cells) > SUMMARY_COLUMNS:
            total = cells[-2] or None
            percentage = self._to_percentage(cells[-1])

        entries = tuple(
            RegisterEntry(
                lecture_number=number,
                date=date,
                period=period,
                status=LectureStatus.from_code(code_text),
                raw_status=code_text,
            )
            # zip stops at the shorter side: extra headers or cells are dropped
            for (number, date, period), code_text in zip(lectures, statuses)
        )

        return SubjectRegister(
            subject_name=name,
            subject_code=code,
            entries=entries,
            total=total,
            reported_percentage=percentage,
        )

    @staticmethod
    def _to_percentage(text: str) -> Decimal | None:
        cleaned = re.sub(r"\s*%$", "", text)
        try:
            return Decimal(cleaned) if cleaned else None
        except InvalidOperation:
            return None
