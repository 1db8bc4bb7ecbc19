"""Soft-constraint scores and the efficiency figure reported with schedules."""

from collections import Counter, defaultdict
from dataclasses import dataclass
from statistics import pvariance
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .catalog import Catalog
from .models import HIGH, INFORMATIONAL, MEDIUM, Assignment, ConflictReport


@dataclass(frozen=True)
class ScoringWeights:
    high: float = 3.0
    medium: float = 2.0
    informational: float = 1.0
    # share of the efficiency figure taken by the soft score
    soft_share: float = 0.1
    spread: float = 0.5
    teacher_balance: float = 0.5

    def for_severity(self, severity: str) -> float:
        return {HIGH: self.high, MEDIUM: self.medium, INFORMATIONAL: self.informational}.get(severity, 0.0)


def conflict_weight(report: ConflictReport, weights: ScoringWeights) -> float:
    return sum(weights.for_severity(c.severity) for c in report)


def max_conflict_weight(
    assignments: Sequence[Assignment],
    catalog: Catalog,
    class_ids: Iterable[str],
    weights: ScoringWeights,
) -> float:
    pairs = 0
    for class_id in class_ids:
        if catalog.has_class(class_id):
            pairs += len(catalog.class_group(class_id).requirements)
    return (weights.high + weights.medium) * len(assignments) + weights.informational * pairs


def spread_score(assignments: Sequence[Assignment], days_per_week: int) -> float:
    """1.0 when every subject of every class is spread over as many days as it can be."""
    days_used: Dict[Tuple[str, str], set] = defaultdict(set)
    placed: Counter = Counter()
    for a in assignments:
        days_used[(a.class_id, a.subject_id)].add(a.day)
        placed[(a.class_id, a.subject_id)] += 1
    if not placed:
        return 1.0
    ratios = [
        len(days_used[key]) / min(count, days_per_week)
        for key, count in placed.items()
    ]
    return sum(ratios) / len(ratios)


def teacher_balance_score(assignments: Sequence[Assignment], days_per_week: int) -> float:
    """1 / (1 + mean variance of each teacher's periods per day)."""
    daily: Dict[str, List[int]] = {}
    for a in assignments:
        loads = daily.setdefault(a.teacher_id, [0] * days_per_week)
        if 0 <= a.day < days_per_week:
            loads[a.day] += 1
    if not daily:
        return 1.0
    mean_variance = sum(pvariance(loads) for loads in daily.values()) / len(daily)
    return 1.0 / (1.0 + mean_variance)


def soft_score(assignments: Sequence[Assignment], catalog: Catalog, weights: ScoringWeights) -> float:
    total = weights.spread + weights.teacher_balance
    if total <= 0:
        return 1.0
    days = catalog.grid.days_per_week
    return (
        weights.spread * spread_score(assignments, days)
        + weights.teacher_balance * teacher_balance_score(assignments, days)
    ) / total


def efficiency_score(
    report: ConflictReport,
    assignments: Sequence[Assignment],
    catalog: Catalog,
    class_ids: Iterable[str],
    weights: Optional[ScoringWeights] = None,
    soft: Optional[float] = None,
) -> float:
    """Efficiency in [0, 100].

    base = 100 * (1 - remaining conflict weight / max possible weight),
    blended with the soft score according to `weights.soft_share`.
    """
    weights = weights or ScoringWeights()
    assignments = list(assignments)
    remaining = conflict_weight(report, weights)
    worst = max_conflict_weight(assignments, catalog, class_ids, weights)
    if worst <= 0:
        base = 100.0 if remaining == 0 else 0.0
    else:
        base = 100.0 * (1.0 - remaining / worst)
    if soft is None:
        soft = soft_score(assignments, catalog, weights)
    share = min(max(weights.soft_share, 0.0), 1.0)
    value = base * (1.0 - share) + 100.0 * share * soft
    return round(min(max(value, 0.0), 100.0), 2)
