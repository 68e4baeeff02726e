from __future__ import annotations

import random
from datetime import date, timedelta
from typing import Any, Dict, List, Mapping, Optional

from moltbook_trends.report.fixtures import TREND_TOPICS

SYNTHETIC_HEAT_MIN = 60.0
SYNTHETIC_HEAT_MAX = 90.0


def last_dates(today: date, days: int = 7) -> List[str]:
    """ISO dates ending at ``today``, newest first."""
    return [(today - timedelta(days=i)).isoformat() for i in range(days)]


def _heat_from_report(report: Mapping[str, Any], keyword: str) -> Optional[float]:
    best: Optional[float] = None
    candidates = [(h.get("topic"), h.get("heat")) for h in report.get("topicHeat") or []]
    candidates += [(t.get("title"), t.get("heat")) for t in report.get("topIssues") or []]
    for label, heat in candidates:
        if not label or heat is None:
            continue
        if keyword in str(label).lower():
            best = float(heat) if best is None else max(best, float(heat))
    return best


def _synthetic_heat(day: str, topic: str) -> float:
    # Seeded per day and topic so the chart is stable across requests.
    rng = random.Random(f"{day}:{topic}")
    return round(rng.uniform(SYNTHETIC_HEAT_MIN, SYNTHETIC_HEAT_MAX), 1)


def trend_series(
    reports: Mapping[str, Optional[Mapping[str, Any]]],
    *,
    today: date,
    days: int = 7,
) -> List[Dict[str, Any]]:
    """Per-day heat of the charted topics, oldest day first.

    ``reports`` maps ISO date -> stored report (or None). Days without a
    report, or topics a report does not mention, get a synthetic value.
    """
    out: List[Dict[str, Any]] = []
    for day in reversed(last_dates(today, days)):
        report = reports.get(day) or {}
        item: Dict[str, Any] = {"date": day}
        for name, _zh, keyword in TREND_TOPICS:
            heat = _heat_from_report(report, keyword) if report else None
            item[name] = heat if heat is not None else _synthetic_heat(day, name)
        out.append(item)
    return out
