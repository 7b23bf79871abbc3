from __future__ import annotations

from typing import List, Optional, Sequence, Tuple

from ..schemas.definitions import (
    PRIORITY_LEVELS,
    SEVERITY_LEVELS,
)
from ..schemas.models import AnnualPlanResult, PlanActivity


def _rank(value: Optional[str], ordered_high_first: Sequence[str]) -> int:
    """Higher rank means more important; unknown values rank lowest (0)."""
    if value is None:
        return 0
    key = str(value).strip().lower()
    levels = [item.lower() for item in ordered_high_first]
    if key not in levels:
        return 0
    return len(levels) - levels.index(key)


def priority_rank(value: Optional[str]) -> int:
    return _rank(value, PRIORITY_LEVELS)


def severity_rank(value: Optional[str]) -> int:
    # "None" is the mildest known level, so it ranks just above unknown values.
    return _rank(value, tuple(reversed(SEVERITY_LEVELS)))


def activities_by_priority(plan: AnnualPlanResult) -> List[Tuple[str, PlanActivity]]:
    """Flatten the plan into (month, activity) pairs, most urgent first.

    The sort is stable, so calendar order is kept within a priority level.
    """
    pairs = [
        (entry.month, activity)
        for entry in plan.annualPlan
        for activity in entry.activities
    ]
    return sorted(pairs, key=lambda pair: -priority_rank(pair[1].priority))
