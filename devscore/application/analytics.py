"""Pure analyses derived from fetched GitHub data.

Language distribution, technology trend projection and contribution
calendar summaries. The trend projection is a documented heuristic kept
for numeric compatibility with earlier releases; it is not a forecast and
can be replaced through ``ScoringService(trend_model=...)``.
"""
import math
from datetime import date, datetime, timedelta
from typing import Dict, List, Mapping, Sequence, Tuple
from devscore.domain.models import (
    ContributionCalendar,
    ContributionDay,
    LanguageDistributionEntry,
    TechnologyTrend,
    TrendPoint,
    round_half_up,
    round_one_decimal
)


MONTH_LABELS = ("Jan", "Feb", "Mar", "Apr", "May", "Jun", "Jul", "Aug", "Sep", "Oct", "Nov", "Dec")

FIRST_CONTRIBUTION_YEAR = 2008


def _clamp(value: float, lower: float, upper: float) -> float:
    return max(lower, min(upper, value))


def language_distribution(byte_totals: Mapping[str, int]) -> List[LanguageDistributionEntry]:
    """Byte-weighted language shares, largest first.

    Each percentage is ``round(bytes / total * 1000) / 10``. Only when the
    rounded shares miss 100.0 by more than 0.1 are they re-apportioned by
    largest remainder.
    """
    total_bytes = sum(byte_totals.values())
    if total_bytes <= 0:
        return []

    ranked = sorted(byte_totals.items(), key=lambda item: (-item[1], item[0]))
    exact = [size / total_bytes * 1000 for _, size in ranked]
    tenths = [round_half_up(value) for value in exact]

    if abs(sum(tenths) - 1000) > 1:
        tenths = [math.floor(value) for value in exact]
        shortfall = 1000 - sum(tenths)
        by_remainder = sorted(range(len(ranked)), key=lambda index: exact[index] - tenths[index], reverse=True)
        for index in by_remainder[:shortfall]:
            tenths[index] += 1

    return [
        LanguageDistributionEntry(language=language, bytes=size, percentage=tenths[index] / 10)
        for index, (language, size) in enumerate(ranked)
    ]


def last_month_labels(now: datetime, count: int = 6) -> List[str]:
    """Abbreviated month names for the last ``count`` months, ending now."""
    return [MONTH_LABELS[(now.month - count + i) % 12] for i in range(count)]


def heuristic_trends(
    distribution: Sequence[LanguageDistributionEntry],
    now: datetime
) -> List[TechnologyTrend]:
    """Six-point demand series for the three largest languages."""
    top = sorted(distribution, key=lambda entry: entry.percentage, reverse=True)[:3]
    months = last_month_labels(now)

    trends = []
    for index, entry in enumerate(top):
        base = 70 + min(25, round_half_up(entry.percentage))
        previous = top[index - 1].percentage if index > 0 else entry.percentage
        growth = _clamp(round_half_up(entry.percentage - previous), -5, 25)

        if growth > 5:
            trend = "rising"
        elif growth < -2:
            trend = "declining"
        else:
            trend = "stable"

        start = _clamp(base - math.floor(growth / 2), 50, 95)
        step = growth / 5
        data_points = tuple(
            TrendPoint(month=month, value=int(_clamp(round_half_up(start + step * i), 40, 100)))
            for i, month in enumerate(months)
        )
        trends.append(TechnologyTrend(
            technology=entry.language,
            trend=trend,
            demand_score=int(_clamp(round_half_up(base), 50, 100)),
            growth_rate=round_half_up(growth),
            data_points=data_points
        ))
    return trends


def clamp_calendar_year(year: int, now: datetime) -> int:
    return int(_clamp(year, FIRST_CONTRIBUTION_YEAR, now.year))


def contribution_streaks(days: Sequence[ContributionDay]) -> Tuple[int, int]:
    """Longest run of active days, and the run ending on the last day."""
    longest = 0
    running = 0
    for day in days:
        running = running + 1 if day.count > 0 else 0
        longest = max(longest, running)

    current = 0
    for day in reversed(days):
        if day.count <= 0:
            break
        current += 1
    return longest, current


def build_contribution_calendar(year: int, days: Sequence[ContributionDay]) -> ContributionCalendar:
    """Fill a possibly sparse day list to the whole year and summarise it."""
    counts: Dict[str, int] = {day.date: day.count for day in days}

    filled = []
    cursor = date(year, 1, 1)
    while cursor.year == year:
        key = cursor.isoformat()
        filled.append(ContributionDay(date=key, count=counts.get(key, 0)))
        cursor += timedelta(days=1)

    total = sum(day.count for day in filled)
    longest, current = contribution_streaks(filled)
    return ContributionCalendar(
        year=year,
        total=total,
        longest_streak=longest,
        current_streak=current,
        average_per_day=round_one_decimal(total / len(filled)),
        daily=tuple(filled)
    )


def market_trend_value(total_count: int) -> int:
    """Map a repository search count onto a 0-100 popularity value."""
    return min(100, round_half_up(math.log10(max(1, total_count)) * 20))
