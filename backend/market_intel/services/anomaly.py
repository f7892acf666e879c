"""Article-volume anomalies per category.

A category is flagged when today's article count sits more than 2 standard
deviations (population) above its mean over the previous 7 days. Only days
with a stored volume row count as history, at least 3 are required, and a
flat history (zero deviation) never alerts.
"""

from collections import Counter
from datetime import date, timedelta

import numpy as np

from market_intel.schemas.intelligence import EnrichedArticle, category_display_name
from market_intel.schemas.signals import AnomalyAlert, CategoryVolume

ROLLING_WINDOW_DAYS = 7
MIN_HISTORY_DAYS = 3
Z_SCORE_THRESHOLD = 2.0


def category_volumes(articles: list[EnrichedArticle], day: date) -> list[CategoryVolume]:
    counts = Counter(a.category for a in articles)
    return [CategoryVolume(date=day, category=c, article_count=n) for c, n in counts.items()]


def detect_anomalies(
    current: dict[str, int],
    history: dict[str, list[int]],
    day: date,
) -> list[AnomalyAlert]:
    """Alerts for `day`, highest z-score first."""
    alerts = []
    for category, count in current.items():
        past = history.get(category, [])[-ROLLING_WINDOW_DAYS:]
        if len(past) < MIN_HISTORY_DAYS:
            continue
        values = np.asarray(past, dtype=float)
        mean = float(values.mean())
        std = float(values.std())
        if std == 0:
            continue

        z = (count - mean) / std
        if z <= Z_SCORE_THRESHOLD:
            continue
        multiplier = round(count / mean, 1)
        alerts.append(AnomalyAlert(
            category=category,
            date=day,
            current_volume=count,
            rolling_avg_7d=round(mean, 1),
            standard_dev=round(std, 1),
            z_score=round(z, 2),
            message=f"{multiplier}x normal coverage on {category_display_name(category)}",
        ))

    alerts.sort(key=lambda a: (-a.z_score, a.category))
    return alerts


async def detect_anomalies_for_date(store, day: date) -> list[AnomalyAlert]:
    """Recompute a date's alerts from stored daily volumes."""
    volumes = await store.get_daily_volumes(day - timedelta(days=ROLLING_WINDOW_DAYS), day)
    current: dict[str, int] = {}
    history: dict[str, list[int]] = {}
    for v in sorted(volumes, key=lambda v: v.date):
        if v.date == day:
            current[v.category] = v.article_count
        elif v.date < day:
            history.setdefault(v.category, []).append(v.article_count)

    return detect_anomalies(current, history, day)
