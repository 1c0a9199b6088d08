"""Field patterns for the attendance summary detail lines.

Each detail line of a subject container is classified against an ordered
family of patterns. The first pattern whose detector accepts the line owns
it. Values are then read with a three-tier fallback:

1. the value right after the label and a colon,
2. the first number-shaped (or date-shaped) substring,
3. the line with the label stripped, kept verbatim.

Labels are matched case-insensitively. Lines are expected to be
whitespace-normalized already (see ``normalize_text``).
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Protocol

COUNT_SHAPE = re.compile(r"\d+")
DECIMAL_SHAPE = re.compile(r"\d+(?:\.\d+)?")
DATE_SHAPE = re.compile(r"\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4}")
DATE_VALUE = r"\d{1,2}\s+[A-Za-z]{3,9}\s+\d{4}"


def after_colon(label: str, value: str, text: str) -> str | None:
    """Tier 1: value immediately following ``label :``."""
    match = re.search(rf"{label}\s*:\s*({value})", text, re.IGNORECASE)
    if match is None:
        return None
    return match.group(1).strip() or None


def nth_shape(shape: re.Pattern, text: str, nth: int = 0) -> str | None:
    """Tier 2: the nth substring with the expected shape."""
    found = shape.findall(text)
    if len(found) <= nth:
        return None
    return found[nth].strip()


def strip_label(label: str, text: str) -> str | None:
    """Tier 3: the line with its label (and colon) removed."""
    remainder = re.sub(rf"{label}\s*:?", "", text, count=1, flags=re.IGNORECASE)
    return remainder.strip() or None


class LinePattern(Protocol):
    name: str

    def matches(self, text: str) -> bool: ...

    def apply(self, text: str) -> dict[str, str | None]: ...


@dataclass(frozen=True)
class FieldPattern:
    """A single labeled value such as ``Delivered : 20``."""

    name: str
    label: str
    value: str
    detect: Callable[[str], bool]
    shape: re.Pattern | None = None

    def matches(self, text: str) -> bool:
        return self.detect(text.lower())

    def extract(self, text: str) -> str | None:
        value = after_colon(self.label, self.value, text)
        if value is None and self.shape is not None:
            value = nth_shape(self.shape, text)
        if value is None:
            value = strip_label(self.label, text)
        return value

    def apply(self, text: str) -> dict[str, str | None]:
        return {self.name: self.extract(text)}


@dataclass(frozen=True)
class DateRangePattern:
    """``From : 01 Jul 2025 TO : 28 Nov 2025`` style session bounds."""

    name: str = "session"
    start_label: str = r"\bfrom\b"
    end_label: str = r"\bto\b"

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return bool(re.search(r"\bfrom\b", lowered) and re.search(r"\bto\b", lowered))

    def apply(self, text: str) -> dict[str, str | None]:
        match = re.search(
            rf"{self.start_label}\s*:\s*({DATE_VALUE})\s*{self.end_label}\s*:\s*({DATE_VALUE})",
            text,
            re.IGNORECASE,
        )
        if match is not None:
            return {"session_start": match.group(1), "session_end": match.group(2)}

        start = nth_shape(DATE_SHAPE, text, 0)
        if start is not None:
            return {"session_start": start, "session_end": nth_shape(DATE_SHAPE, text, 1)}

        raw = re.sub(rf"{self.start_label}\s*:?\s*", "", text, count=1, flags=re.IGNORECASE)
        raw = re.sub(rf"\s*{self.end_label}\s*:?\s*", " - ", raw, count=1, flags=re.IGNORECASE)
        return {"session_start": raw.strip() or None, "session_end": None}


@dataclass(frozen=True)
class LeavePattern:
    """The combined ``DL : 10 ML : 0`` line with both leaves used."""

    name: str = "leaves"
    duty_label: str = r"\bDL\b"
    medical_label: str = r"\bML\b"

    def matches(self, text: str) -> bool:
        lowered = text.lower()
        return (
            re.search(r"\bdl\b", lowered) is not None
            and re.search(r"\bml\b", lowered) is not None
            and "approved" not in lowered
        )

    def apply(self, text: str) -> dict[str, str | None]:
        duty = after_colon(self.duty_label, COUNT_SHAPE.pattern, text)
        medical = after_colon(self.medical_label, COUNT_SHAPE.pattern, text)
        # Without labels the portal lists DL first, then ML
        if duty is None:
            duty = nth_shape(COUNT_SHAPE, text, 0)
        if medical is None:
            medical = nth_shape(COUNT_SHAPE, text, 1)
        if duty is None:
            head = re.split(self.medical_label, text, maxsplit=1, flags=re.IGNORECASE)[0]
            duty = strip_label(self.duty_label, head)
        if medical is None:
            tail = re.split(self.medical_label, text, maxsplit=1, flags=re.IGNORECASE)[-1]
            medical = strip_label("", tail)
        return {"duty_leave_used": duty, "medical_leave_used": medical}


def _contains(*words: str, excluding: tuple[str, ...] = ()) -> Callable[[str], bool]:
    def detect(lowered: str) -> bool:
        return all(word in lowered for word in words) and not any(
            word in lowered for word in excluding
        )

    return detect


def _regex(pattern: str) -> Callable[[str], bool]:
    compiled = re.compile(pattern)

    def detect(lowered: str) -> bool:
        return compiled.search(lowered) is not None

    return detect


# Order matters: the first detector that accepts a line wins.
FIELD_PATTERNS: tuple[LinePattern, ...] = (
    FieldPattern(
        name="teacher",
        label=r"teacher",
        value=r".+",
        detect=_contains("teacher"),
    ),
    DateRangePattern(),
    FieldPattern(
        name="lectures_delivered",
        label=r"delivered",
        value=r"\d+",
        detect=_contains("delivered"),
        shape=COUNT_SHAPE,
    ),
    FieldPattern(
        name="lectures_attended",
        label=r"attended",
        value=r"\d+",
        detect=_contains("attended", excluding=("percentage",)),
        shape=COUNT_SHAPE,
    ),
    FieldPattern(
        name="lectures_absent",
        label=r"absent",
        value=r"\d+",
        detect=_contains("absent"),
        shape=COUNT_SHAPE,
    ),
    LeavePattern(),
    FieldPattern(
        name="reported_percentage",
        label=r"(?:total\s+)?percentage",
        value=r"\d+(?:\.\d+)?",
        detect=_contains("percentage"),
        shape=DECIMAL_SHAPE,
    ),
    FieldPattern(
        name="approved_duty_leave",
        label=r"(?:total\s+)?approved\s*dl",
        value=r"\d+",
        detect=_regex(r"approved\s*dl"),
        shape=COUNT_SHAPE,
    ),
    FieldPattern(
        name="approved_medical_leave_quota",
        label=r"(?:total\s+)?approved\s*ml",
        value=r"\d+",
        detect=_regex(r"approved\s*ml"),
        shape=COUNT_SHAPE,
    ),
)


@dataclass(frozen=True)
class LineClassifier:
    """Routes detail lines to the first matching pattern."""

    patterns: tuple[LinePattern, ...] = FIELD_PATTERNS

    def classify(self, text: str) -> LinePattern | None:
        for pattern in self.patterns:
            if pattern.matches(text):
                return pattern
        return None
