"""GPA arithmetic over graded registrations."""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from typing import TYPE_CHECKING

from coursereg.store.models import Grade

if TYPE_CHECKING:
    from collections.abc import Iterable

    from coursereg.grading.models import GradeEntry

TWO_PLACES = Decimal("0.01")
ZERO_GPA = Decimal("0.00")


def counts_toward_gpa(entry: GradeEntry, count_incomplete: bool = False) -> bool:
    """Whether an attempt contributes to the cumulative GPA.

    Withdraw never counts. Incomplete counts only when count_incomplete is set.
    """
    if not entry.completed or entry.dropped or entry.grade_points is None:
        return False
    if entry.grade == Grade.WITHDRAW:
        return False
    if entry.grade == Grade.INCOMPLETE and not count_incomplete:
        return False
    return entry.credit_hours > 0


def compute_gpa(entries: Iterable[GradeEntry], count_incomplete: bool = False) -> Decimal:
    """Credit-weighted grade point average, rounded half-up to two places.

    Args:
        entries: Graded attempts, in any order.
        count_incomplete: Treat Incomplete as 0.0 points instead of skipping it.

    Returns:
        The GPA, or 0.00 when no attempt qualifies.
    """
    points = Decimal("0")
    credits = 0
    for entry in entries:
        grade_points = entry.grade_points
        if grade_points is None or not counts_toward_gpa(entry, count_incomplete):
            continue
        points += Decimal(grade_points) * entry.credit_hours
        credits += entry.credit_hours

    if credits == 0:
        return ZERO_GPA
    return (points / credits).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)
