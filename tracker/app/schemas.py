"""Typed attendance records exchanged between extractor, cache and coordinator."""

from collections import Counter
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class LectureStatus(str, Enum):
    """Per-lecture attendance outcome in the register view."""

    PRESENT = "Present"
    ABSENT = "Absent"
    DUTY_LEAVE = "DutyLeave"
    MEDICAL_LEAVE = "MedicalLeave"
    UNKNOWN = "Unknown"

    @classmethod
    def from_code(cls, code: str) -> "LectureStatus":
        """Map an upstream register cell to a status.

        The portal writes the number of periods attended for a present
        lecture, ``X`` for an absence and ``DL``/``ML`` for leaves.
        """
        value = code.strip().upper()
        if value in ("X", "A"):
            return cls.ABSENT
        if value == "DL":
            return cls.DUTY_LEAVE
        if value == "ML":
            return cls.MEDICAL_LEAVE
        if value == "P" or value.isdecimal():
            return cls.PRESENT
        return cls.UNKNOWN


class SubjectAttendance(BaseModel):
    """Per-subject attendance summary as reported by the portal."""

    model_config = ConfigDict(frozen=True)

    subject_name: str = Field(..., min_length=1)
    subject_code: str = ""
    teacher: str | None = None
    session_start: str | None = None
    session_end: str | None = None
    lectures_delivered: int = Field(default=0, ge=0)
    lectures_attended: int = Field(default=0, ge=0)
    lectures_absent: int = Field(default=0, ge=0)
    duty_leave_used: int = Field(default=0, ge=0)
    medical_leave_used: int = Field(default=0, ge=0)
    approved_duty_leave: int = Field(default=0, ge=0)
    approved_medical_leave_quota: int = Field(default=0, ge=0)
    # As displayed upstream, never recomputed
    reported_percentage: Decimal | None = None

    @property
    def duration(self) -> str | None:
        if self.session_start and self.session_end:
            return f"{self.session_start} - {self.session_end}"
        return self.session_start


class RegisterEntry(BaseModel):
    """A single lecture of a subject's register."""

    model_config = ConfigDict(frozen=True)

    lecture_number: int = Field(..., ge=0)
    date: str = ""
    period: str = ""
    status: LectureStatus
    raw_status: str = ""


class SubjectRegister(BaseModel):
    """The per-lecture register of one subject."""

    model_config = ConfigDict(frozen=True)

    subject_name: str
    subject_code: str = ""
    entries: tuple[RegisterEntry, ...] = ()
    total: str | None = None
    reported_percentage: Decimal | None = None

    def status_counts(self) -> dict[LectureStatus, int]:
        counts = Counter(entry.status for entry in self.entries)
        return {status: counts.get(status, 0) for status in LectureStatus}


class FeedItem(BaseModel):
    """An activity feed item. ``item_id`` is stable across fetches."""

    model_config = ConfigDict(frozen=True)

    item_id: str = Field(..., min_length=1)
    timestamp: datetime
    title: str = ""
    body: str = ""


@dataclass(frozen=True)
class CacheKey:
    """Identifies one student's data for one academic session.

    Attributes:
        user_id: Portal user (student) id
        institution: Institution abbreviation, also the portal subdomain
        session_id: Academic session id
    """

    user_id: str
    institution: str
    session_id: str

    def storage_key(self, prefix: str = "attendance") -> str:
        return f"{prefix}:{self.institution}:{self.user_id}:{self.session_id}"

    def log_context(self) -> dict[str, str]:
        return {
            "user_id": self.user_id,
            "institution": self.institution,
            "session_id": self.session_id,
        }
