"""Attendance projection: what happens to a subject if N more classes are missed.

Duty leave counts as attended. Medical leave does not count by default; it
is only credited, up to the approved quota, when the projection without it
falls between the medical leave floor and the compliance target. The credit
is the smallest number of classes that lifts the projection back to the
target.

All comparisons use exact rational arithmetic, so a projection sitting
exactly on a threshold is never misclassified by float rounding.
"""

import math
from dataclasses import dataclass
from enum import Enum
from fractions import Fraction
from typing import Optional

from tracker.app.core.config import settings
from tracker.app.exceptions import InvalidPolicyError, ProjectionNotApplicable
from tracker.app.schemas import SubjectAttendance


class ProjectionStatus(str, Enum):
    GOOD_TO_GO = "GoodToGo"
    RISKY = "Risky"
    DONT_MISS = "DontMiss"
    NOT_APPLICABLE = "NotApplicable"


@dataclass(frozen=True)
class ProjectionPolicy:
    """Thresholds (in percent) and the allowed range for classes to miss."""

    compliance_target: float = 75.0
    medical_leave_floor: float = 65.0
    classes_to_miss_min: int = 1
    classes_to_miss_max: int = 100
    classes_to_miss_default: int = 1

    def __post_init__(self) -> None:
        if not 0 < self.medical_leave_floor < self.compliance_target <= 100:
            raise InvalidPolicyError(
                f"Invalid thresholds: floor={self.medical_leave_floor}, "
                f"target={self.compliance_target}"
            )
        if not (
            1
            <= self.classes_to_miss_min
            <= self.classes_to_miss_default
            <= self.classes_to_miss_max
        ):
            raise InvalidPolicyError(
                f"Invalid classes to miss range: min={self.classes_to_miss_min}, "
                f"default={self.classes_to_miss_default}, max={self.classes_to_miss_max}"
            )

    @classmethod
    def from_settings(cls) -> "ProjectionPolicy":
        return cls(
            compliance_target=settings.compliance_target_percentage,
            medical_leave_floor=settings.medical_leave_floor_percentage,
            classes_to_miss_min=settings.classes_to_miss_min,
            classes_to_miss_max=settings.classes_to_miss_max,
            classes_to_miss_default=settings.classes_to_miss_default,
        )

    def clamp(self, classes_to_miss: Optional[int]) -> int:
        if classes_to_miss is None:
            return self.classes_to_miss_default
        return max(self.classes_to_miss_min, min(classes_to_miss, self.classes_to_miss_max))


@dataclass(frozen=True)
class ProjectionResult:
    status: ProjectionStatus
    current_percentage: Optional[float] = None
    projected_percentage: Optional[float] = None
    medical_leave_credit_applied: int = 0
    classes_to_miss: int = 0
    base_attended: int = 0
    new_delivered: int = 0


def _exact(value: float) -> Fraction:
    # Fraction(str(...)) keeps 72.3 as 723/10 rather than its binary expansion
    return Fraction(str(value))


def current_percentage(record: SubjectAttendance) -> Fraction:
    """Attendance today, counting duty and medical leave as attended.

    Raises:
        ProjectionNotApplicable: If no lectures have been delivered.
    """
    if record.lectures_delivered == 0:
        raise ProjectionNotApplicable(record.subject_code)
    counted = record.lectures_attended + record.duty_leave_used + record.medical_leave_used
    return Fraction(counted * 100, record.lectures_delivered)


class AttendanceProjector:
    """Pure projection of a subject's attendance after missing more classes."""

    def __init__(self, policy: Optional[ProjectionPolicy] = None) -> None:
        self.policy = policy or ProjectionPolicy.from_settings()

    def project(
        self,
        record: SubjectAttendance,
        classes_to_miss: Optional[int] = None,
    ) -> ProjectionResult:
        n = self.policy.clamp(classes_to_miss)
        try:
            current = current_percentage(record)
        except ProjectionNotApplicable:
            return ProjectionResult(status=ProjectionStatus.NOT_APPLICABLE, classes_to_miss=n)

        target = _exact(self.policy.compliance_target)
        floor = _exact(self.policy.medical_leave_floor)
        quota = record.approved_medical_leave_quota

        base_attended = record.lectures_attended + record.duty_leave_used
        new_delivered = record.lectures_delivered + n
        without_ml = Fraction(base_attended * 100, new_delivered)

        credit = 0
        projected = without_ml
        if without_ml >= target:
            status = ProjectionStatus.GOOD_TO_GO
        elif without_ml >= floor and quota > 0:
            needed = math.ceil(target / 100 * new_delivered - base_attended)
            credit = max(0, min(needed, quota))
            projected = Fraction((base_attended + credit) * 100, new_delivered)
            status = ProjectionStatus.GOOD_TO_GO if projected >= target else ProjectionStatus.RISKY
        elif without_ml < floor:
            status = ProjectionStatus.DONT_MISS
        else:
            status = ProjectionStatus.RISKY

        return ProjectionResult(
            status=status,
            current_percentage=float(current),
            projected_percentage=float(projected),
            medical_leave_credit_applied=credit,
            classes_to_miss=n,
            base_attended=base_attended,
            new_delivered=new_delivered,
        )
