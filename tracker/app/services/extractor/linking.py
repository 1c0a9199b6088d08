"""Association of register subjects with summary subjects."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Sequence

from tracker.app.schemas import SubjectAttendance, SubjectRegister


@dataclass(frozen=True)
class RegisterLink:
    register: SubjectRegister
    summary: SubjectAttendance | None = None

    @property
    def is_linked(self) -> bool:
        return self.summary is not None


def _folded(text: str) -> str:
    return text.strip().casefold()


def _same_code(register: SubjectRegister, summary: SubjectAttendance) -> bool:
    code = _folded(register.subject_code)
    return bool(code) and code == _folded(summary.subject_code)


def _same_name(register: SubjectRegister, summary: SubjectAttendance) -> bool:
    return _folded(register.subject_name) == _folded(summary.subject_name)


def _name_overlaps(register: SubjectRegister, summary: SubjectAttendance) -> bool:
    left = _folded(register.subject_name)
    right = _folded(summary.subject_name)
    if not left or not right:
        return False
    return left in right or right in left


MATCH_TIERS: tuple[Callable[[SubjectRegister, SubjectAttendance], bool], ...] = (
    _same_code,
    _same_name,
    _name_overlaps,
)


def find_summary(
    register: SubjectRegister,
    summaries: Sequence[SubjectAttendance],
) -> SubjectAttendance | None:
    """Return the summary matching ``register``, trying each tier in turn."""
    for matches in MATCH_TIERS:
        for summary in summaries:
            if matches(register, summary):
                return summary
    return None


def link_registers(
    registers: Sequence[SubjectRegister],
    summaries: Sequence[SubjectAttendance],
) -> list[RegisterLink]:
    return [
        RegisterLink(register=register, summary=find_summary(register, summaries))
        for register in registers
    ]
