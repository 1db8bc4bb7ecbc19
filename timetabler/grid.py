"""Weekly slot grid: the (day, period) cells every class shares.

Break and lunch periods sit at the same index on every day and never
receive a lesson.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Tuple

from .config import (
    DEFAULT_BREAK_PERIODS,
    DEFAULT_DAYS_PER_WEEK,
    DEFAULT_LUNCH_PERIODS,
    DEFAULT_PERIODS_PER_DAY,
)
from .errors import ConfigError

# (day index, period index), both zero-based
Cell = Tuple[int, int]

DAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")

BREAK = "Break"
LUNCH = "Lunch"


@dataclass(frozen=True)
class GridConfig:
    days_per_week: int = DEFAULT_DAYS_PER_WEEK
    periods_per_day: int = DEFAULT_PERIODS_PER_DAY
    break_periods: Tuple[int, ...] = DEFAULT_BREAK_PERIODS
    lunch_periods: Tuple[int, ...] = DEFAULT_LUNCH_PERIODS
    period_times: Optional[Tuple[str, ...]] = None
    break_room: str = "Playground"
    lunch_room: str = "Cafeteria"


@dataclass(frozen=True)
class SlotGrid:
    days_per_week: int
    periods_per_day: int
    teaching_slots: Tuple[Cell, ...]
    fixed_slots: Tuple[Cell, ...]
    # period index -> BREAK / LUNCH
    fixed_periods: Tuple[Tuple[int, str], ...] = ()
    period_times: Optional[Tuple[str, ...]] = None
    break_room: str = "Playground"
    lunch_room: str = "Cafeteria"

    @property
    def cells(self) -> Tuple[Cell, ...]:
        return tuple((d, p) for d in range(self.days_per_week) for p in range(self.periods_per_day))

    def is_teaching(self, cell: Cell) -> bool:
        day, period = cell
        return 0 <= day < self.days_per_week and 0 <= period < self.periods_per_day \
            and self.fixed_label(period) is None

    def contains(self, cell: Cell) -> bool:
        day, period = cell
        return 0 <= day < self.days_per_week and 0 <= period < self.periods_per_day

    def fixed_label(self, period: int) -> Optional[str]:
        return dict(self.fixed_periods).get(period)

    def fixed_room(self, period: int) -> Optional[str]:
        label = self.fixed_label(period)
        if label == BREAK:
            return self.break_room
        if label == LUNCH:
            return self.lunch_room
        return None

    def day_name(self, day: int) -> str:
        if day < len(DAY_NAMES):
            return DAY_NAMES[day]
        return f"Day {day + 1}"

    def period_label(self, period: int) -> str:
        if self.period_times:
            return self.period_times[period]
        return f"Period {period + 1}"

    def describe(self, cell: Cell) -> str:
        day, period = cell
        return f"{self.day_name(day)} period {period + 1}"


def _indices(values: Iterable[int], periods_per_day: int, what: str) -> Tuple[int, ...]:
    result = []
    for value in values:
        if not isinstance(value, int) or not 0 <= value < periods_per_day:
            raise ConfigError(
                f"{what} period {value!r} is outside [0, {periods_per_day})"
            )
        if value not in result:
            result.append(value)
    return tuple(sorted(result))


def build_slot_grid(
    days_per_week: int = DEFAULT_DAYS_PER_WEEK,
    periods_per_day: int = DEFAULT_PERIODS_PER_DAY,
    break_periods: Sequence[int] = DEFAULT_BREAK_PERIODS,
    lunch_periods: Sequence[int] = DEFAULT_LUNCH_PERIODS,
    period_times: Optional[Sequence[str]] = None,
    *,
    break_room: str = "Playground",
    lunch_room: str = "Cafeteria",
) -> SlotGrid:
    """Derive the slot grid from the day/period counts and fixed periods.

    Raises ConfigError for non-positive counts, fixed indices outside the
    day, a period marked as both break and lunch, a grid with no teaching
    slot, or period_times of the wrong length.
    """
    if not isinstance(days_per_week, int) or days_per_week <= 0:
        raise ConfigError(f"days_per_week must be a positive integer, got {days_per_week!r}")
    if not isinstance(periods_per_day, int) or periods_per_day <= 0:
        raise ConfigError(f"periods_per_day must be a positive integer, got {periods_per_day!r}")

    breaks = _indices(break_periods, periods_per_day, "Break")
    lunches = _indices(lunch_periods, periods_per_day, "Lunch")
    overlap = set(breaks) & set(lunches)
    if overlap:
        raise ConfigError(f"Periods {sorted(overlap)} are marked as both break and lunch")

    if period_times is not None:
        period_times = tuple(period_times)
        if len(period_times) != periods_per_day:
            raise ConfigError(
                f"Expected {periods_per_day} period times, got {len(period_times)}"
            )

    labels: Dict[int, str] = {p: BREAK for p in breaks}
    labels.update({p: LUNCH for p in lunches})

    teaching = []
    fixed = []
    for d in range(days_per_week):
        for p in range(periods_per_day):
            if p in labels:
                fixed.append((d, p))
            else:
                teaching.append((d, p))

    if not teaching:
        raise ConfigError("Slot grid has no teaching periods left after breaks and lunch")

    return SlotGrid(
        days_per_week=days_per_week,
        periods_per_day=periods_per_day,
        teaching_slots=tuple(teaching),
        fixed_slots=tuple(fixed),
        fixed_periods=tuple(sorted(labels.items())),
        period_times=period_times,
        break_room=break_room,
        lunch_room=lunch_room,
    )


def grid_from_config(config: GridConfig) -> SlotGrid:
    return build_slot_grid(
        config.days_per_week,
        config.periods_per_day,
        config.break_periods,
        config.lunch_periods,
        config.period_times,
        break_room=config.break_room,
        lunch_room=config.lunch_room,
    )
