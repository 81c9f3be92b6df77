"""Pure aggregation over lists of attendance events."""
from collections import defaultdict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Set, Tuple

from attendance.schemas import ActionType, AttendanceEvent, CrewSummary, DailyOverview


def newest_first(events: Iterable[AttendanceEvent]) -> List[AttendanceEvent]:
    return sorted(events, key=lambda e: e.timestamp, reverse=True)


def summarize_by_crew(events: Iterable[AttendanceEvent]) -> List[CrewSummary]:
    """
    Group events by crew member.

    Name and store name come from the first event seen for each crew member
    (a reassignment inside the range keeps the first store). Groups are ordered
    by crew name, each group's logs newest first.
    """
    groups: Dict[str, List[AttendanceEvent]] = {}
    for event in events:
        groups.setdefault(event.crew_member_id, []).append(event)

    summaries = [
        CrewSummary(
            crew_member_id=crew_id,
            crew_member_name=logs[0].crew_member_name,
            location_name=logs[0].location_name,
            clock_in_count=sum(1 for e in logs if e.type == ActionType.clock_in),
            logs=newest_first(logs),
        )
        for crew_id, logs in groups.items()
    ]
    summaries.sort(key=lambda s: s.crew_member_name)
    return summaries


def today_bounds(now: datetime) -> Tuple[datetime, datetime]:
    """[00:00:00.000, 23:59:59.999] of the calendar day of `now`, in its own timezone."""
    start = now.replace(hour=0, minute=0, second=0, microsecond=0)
    end = now.replace(hour=23, minute=59, second=59, microsecond=999000)
    return start, end


def daily_overview(
    events: Iterable[AttendanceEvent],
    now: datetime,
    total_crew: Optional[int] = None,
    recent_limit: int = 5,
    recent: Optional[Iterable[AttendanceEvent]] = None,
) -> DailyOverview:
    """
    Crew present today (at least one clock-in), overall and per store, plus the latest activity.

    ``recent`` is the latest activity regardless of day (e.g. a separate
    newest-first store query); when omitted it is taken from ``events``.
    """
    if now.tzinfo is None or now.utcoffset() is None:
        raise ValueError("now must be timezone-aware")
    events = list(events)
    start, end = today_bounds(now)

    present: Set[str] = set()
    by_location: Dict[str, Set[str]] = defaultdict(set)
    for event in events:
        if event.type != ActionType.clock_in:
            continue
        if not start <= event.timestamp <= end:
            continue
        present.add(event.crew_member_id)
        by_location[event.location_id].add(event.crew_member_id)

    return DailyOverview(
        date=start.date().isoformat(),
        start=start,
        end=end,
        total_crew=total_crew,
        present_count=len(present),
        present_crew_ids=sorted(present),
        present_by_location={loc: sorted(ids) for loc, ids in sorted(by_location.items())},
        recent=newest_first(events if recent is None else recent)[:recent_limit],
    )


def alternation_violations(events: Iterable[AttendanceEvent]) -> List[AttendanceEvent]:
    """
    Events that break in/out alternation for their crew member.

    Per crew member in timestamp order, the first event should be 'in' and each
    later event should differ from its predecessor.
    """
    by_crew: Dict[str, List[AttendanceEvent]] = defaultdict(list)
    for event in events:
        by_crew[event.crew_member_id].append(event)

    violations: List[AttendanceEvent] = []
    for history in by_crew.values():
        previous: Optional[AttendanceEvent] = None
        for event in sorted(history, key=lambda e: e.timestamp):
            if previous is None:
                if event.type != ActionType.clock_in:
                    violations.append(event)
            elif event.type == previous.type:
                violations.append(event)
            previous = event
    return violations
