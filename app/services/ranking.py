# app/services/ranking.py
"""
Severity ranking, filter predicates and pagination for the alert list.

All functions are pure. The three filter predicates are independent of each
other, so applying them in any order gives the same list; `filter_alerts`
simply requires all three.
"""
from __future__ import annotations

from typing import Callable, Dict, Iterable, List, Sequence, TypeVar

from app.core.contracts import Alert, FilterState
from app.core.settings import settings
from app.core.time import epoch_or_zero
from app.core.zones import ZONES, area_display, classify_zone

T = TypeVar("T")

AlertPredicate = Callable[[Alert], bool]


_SEVERITY: Dict[str, int] = {"red": 3, "orange": 2, "yellow": 1}


def severity_score(level: str) -> int:
    # unknown never gets this far (dropped by the normalizer), still maps to 0
    return _SEVERITY.get(level, 0)


def _rank_key(a: Alert):
    return (severity_score(a.level), epoch_or_zero(a.startsAt))


def rank(alerts: Iterable[Alert]) -> List[Alert]:
    """Most severe first; within a level, most recent `startsAt` first."""
    return sorted(alerts, key=_rank_key, reverse=True)


# ══════════════════════════════════════════════════════════════
# Predicates
# ══════════════════════════════════════════════════════════════

def zone_predicate(zone: str) -> AlertPredicate:
    if zone == "all":
        return lambda a: True
    return lambda a: classify_zone(a.area) == zone


def level_predicate(level: str) -> AlertPredicate:
    if level == "all":
        return lambda a: True
    return lambda a: a.level == level


def query_predicate(query: str) -> AlertPredicate:
    q = (query or "").strip().lower()
    if not q:
        return lambda a: True

    def match(a: Alert) -> bool:
        return (
            q in (a.title or "").lower()
            or q in area_display(a.area).lower()
            or q in (a.area or "").lower()
        )

    return match


def predicates_for(state: FilterState) -> List[AlertPredicate]:
    return [
        zone_predicate(state.zone),
        level_predicate(state.level),
        query_predicate(state.query),
    ]


def apply_predicate(alerts: Iterable[Alert], pred: AlertPredicate) -> List[Alert]:
    return [a for a in alerts if pred(a)]


def filter_alerts(alerts: Iterable[Alert], state: FilterState) -> List[Alert]:
    preds = predicates_for(state)
    return [a for a in alerts if all(p(a) for p in preds)]


def view(alerts: Iterable[Alert], state: FilterState) -> List[Alert]:
    return rank(filter_alerts(alerts, state))


def zone_counts(alerts: Iterable[Alert]) -> Dict[str, int]:
    counts: Dict[str, int] = {z: 0 for z in ZONES}
    for a in alerts:
        counts[classify_zone(a.area)] += 1
    return counts


# ══════════════════════════════════════════════════════════════
# Pagination
# ══════════════════════════════════════════════════════════════

def paginate(items: Sequence[T], visible: int) -> List[T]:
    return list(items[: max(0, int(visible))])


class AlertPager:
    """
    "Show more" cursor over a filtered+ranked list.

    Any filter change resets the cursor to the initial page size. `/alerts/view`
    keeps one per client session.
    """

    def __init__(self, *, page_size: int | None = None, step: int | None = None) -> None:
        self.page_size = int(settings.alerts_page_size if page_size is None else page_size)
        self.step = int(settings.alerts_page_step if step is None else step)
        self.visible = self.page_size
        self.filters = FilterState()

    def set_filters(self, state: FilterState) -> None:
        if state != self.filters:
            self.filters = state
            self.visible = self.page_size

    def more(self) -> int:
        self.visible += self.step
        return self.visible

    def less(self) -> int:
        self.visible = self.page_size
        return self.visible

    def page(self, ranked: Sequence[T]) -> List[T]:
        return paginate(ranked, self.visible)

    def has_more(self, ranked: Sequence[T]) -> bool:
        return self.visible < len(ranked)
