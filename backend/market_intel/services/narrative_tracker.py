"""Narrative threads: stories that persist across several days of clusters.

Matching: a cluster is scored against each active thread as
    3 * shared entities + 2 * shared keywords + (1 if a category is shared)
and may only link when it shares at least `min_entity_overlap` entities or
`min_keyword_overlap` keywords. Each cluster links to its best thread (ties:
oldest thread first). All of a day's clusters that land on the same thread
contribute one arc point, their article-weighted mean sentiment.

Escalation: least-squares slope of the last three arc points. At or above
+slope threshold is "rising", at or below -threshold is "declining".

Resolution: a thread is resolved once it has gone `inactivity_days` consecutive
days without a linked cluster. Before matching day D that means the days
strictly between last_seen and D; at the end of a window ending on `as_of`
the days after last_seen up to and including `as_of`. Resolved threads are
never matched again.
"""

import logging
from collections import defaultdict
from datetime import date, timedelta

import numpy as np

from market_intel.config import get_settings
from market_intel.schemas.narrative import ArticleCluster, NarrativeRollupResponse, NarrativeThread
from market_intel.services.clustering import cluster_articles

logger = logging.getLogger("market_intel.narrative")

ESCALATION_WINDOW = 3
MAX_THREAD_KEYWORDS = 20
TITLE_KEYWORDS = 3


def classify_escalation(arc: list[float], threshold: float) -> str:
    tail = arc[-ESCALATION_WINDOW:]
    if len(tail) < 2:
        return "stable"
    slope = float(np.polyfit(np.arange(len(tail), dtype=float), np.asarray(tail, dtype=float), 1)[0])
    if slope >= threshold:
        return "rising"
    if slope <= -threshold:
        return "declining"
    return "stable"


def _merge(existing: list[str], new: list[str], newest_first: bool = False) -> list[str]:
    ordered = (new + existing) if newest_first else (existing + new)
    return list(dict.fromkeys(ordered))


class NarrativeTracker:
    """Replays day-ordered clusters into narrative threads."""

    def __init__(
        self,
        inactivity_days: int | None = None,
        min_entity_overlap: int | None = None,
        min_keyword_overlap: int | None = None,
        escalation_slope: float | None = None,
    ):
        settings = get_settings()
        self.inactivity_days = (
            settings.narrative_inactivity_days if inactivity_days is None else inactivity_days
        )
        self.min_entity_overlap = (
            settings.narrative_min_entity_overlap if min_entity_overlap is None else min_entity_overlap
        )
        self.min_keyword_overlap = (
            settings.narrative_min_keyword_overlap if min_keyword_overlap is None else min_keyword_overlap
        )
        self.escalation_slope = (
            settings.narrative_escalation_slope if escalation_slope is None else escalation_slope
        )
        self.threads: list[NarrativeThread] = []

    def match_score(self, thread: NarrativeThread, cluster: ArticleCluster) -> int | None:
        """Link score, or None when the cluster does not qualify for the thread."""
        entity_overlap = len(set(thread.entities) & {e.lower() for e in cluster.entities})
        keyword_overlap = len(set(thread.keywords) & {k.lower() for k in cluster.keywords})
        if entity_overlap < self.min_entity_overlap and keyword_overlap < self.min_keyword_overlap:
            return None
        category_match = 1 if set(thread.categories) & set(cluster.categories) else 0
        return 3 * entity_overlap + 2 * keyword_overlap + category_match

    def _best_thread(self, cluster: ArticleCluster) -> NarrativeThread | None:
        best: NarrativeThread | None = None
        best_key = None
        for thread in self.threads:
            if thread.status != "active":
                continue
            score = self.match_score(thread, cluster)
            if score is None:
                continue
            # Higher score wins, then the older thread
            key = (-score, thread.first_seen, thread.id)
            if best_key is None or key < best_key:
                best, best_key = thread, key
        return best

    def _spawn(self, cluster: ArticleCluster, day: date) -> NarrativeThread:
        thread = NarrativeThread(
            id=f"thread_{cluster.id}",
            title=f"Ongoing: {cluster.topic}",
            first_seen=day,
            last_seen=day,
            duration_days=1,
            cluster_ids=[cluster.id],
            sentiment_arc=[round(cluster.aggregate_sentiment, 4)],
            entities=_merge([], [e.lower() for e in cluster.entities]),
            keywords=_merge([], [k.lower() for k in cluster.keywords])[:MAX_THREAD_KEYWORDS],
            categories=list(cluster.categories),
            escalation="stable",
            status="active",
        )
        self.threads.append(thread)
        return thread

    def _extend(self, thread: NarrativeThread, clusters: list[ArticleCluster], day: date) -> None:
        if len(thread.cluster_ids) == 1:
            new_keywords = {k.lower() for c in clusters for k in c.keywords}
            shared = [k for k in thread.keywords if k in new_keywords][:TITLE_KEYWORDS]
            if shared:
                thread.title = "Developing: " + ", ".join(k.capitalize() for k in shared)

        total = sum(max(c.article_count, 1) for c in clusters)
        day_sentiment = sum(c.aggregate_sentiment * max(c.article_count, 1) for c in clusters) / total

        thread.cluster_ids.extend(c.id for c in clusters)
        thread.sentiment_arc.append(round(day_sentiment, 4))
        thread.last_seen = day
        thread.duration_days = (thread.last_seen - thread.first_seen).days + 1
        for c in clusters:
            thread.entities = _merge(thread.entities, [e.lower() for e in c.entities])
            thread.keywords = _merge(thread.keywords, [k.lower() for k in c.keywords], newest_first=True)
            thread.categories = _merge(thread.categories, c.categories)
        thread.keywords = thread.keywords[:MAX_THREAD_KEYWORDS]
        thread.escalation = classify_escalation(thread.sentiment_arc, self.escalation_slope)

    def resolve_inactive(self, as_of: date) -> None:
        """Resolve threads with no linked cluster on any day after last_seen through `as_of`."""
        for thread in self.threads:
            if thread.status != "active":
                continue
            if (as_of - thread.last_seen).days >= self.inactivity_days:
                thread.status = "resolved"
                logger.debug("Narrative %s resolved (last seen %s)", thread.id, thread.last_seen)

    def process_day(self, day: date, clusters: list[ArticleCluster]) -> None:
        # Only the days before this one count as missed
        self.resolve_inactive(day - timedelta(days=1))
        assignments: dict[str, list[ArticleCluster]] = defaultdict(list)
        by_id = {t.id: t for t in self.threads}
        unmatched: list[ArticleCluster] = []

        for cluster in clusters:
            thread = self._best_thread(cluster)
            if thread is None:
                unmatched.append(cluster)
            else:
                assignments[thread.id].append(cluster)

        for thread_id, linked in assignments.items():
            self._extend(by_id[thread_id], linked, day)

        for cluster in unmatched:
            self._spawn(cluster, day)

    def run(
        self,
        clusters_by_day: dict[date, list[ArticleCluster]],
        as_of: date | None = None,
    ) -> list[NarrativeThread]:
        for day in sorted(clusters_by_day):
            self.process_day(day, clusters_by_day[day])
        if as_of is not None:
            self.resolve_inactive(as_of)
        return self.sorted_threads()

    def sorted_threads(self) -> list[NarrativeThread]:
        """Active first, then most recently seen."""
        return sorted(
            self.threads,
            key=lambda t: (t.status != "active", -t.last_seen.toordinal(), t.id),
        )


async def run_narrative_rollup(store, as_of: date, days: int | None = None) -> NarrativeRollupResponse:
    """Cluster persisted enriched articles for the window and replay them into threads."""
    settings = get_settings()
    window = days or settings.narrative_window_days
    start = as_of - timedelta(days=window - 1)

    articles_by_day = await store.get_enriched_articles(start, as_of)
    clusters_by_day = {
        day: cluster_articles(articles, day)
        for day, articles in articles_by_day.items()
        if articles
    }

    threads = NarrativeTracker().run(clusters_by_day, as_of=as_of)
    await store.upsert_narrative_threads(threads)

    active = sum(1 for t in threads if t.status == "active")
    logger.info(
        "Narrative rollup %s → %s: %d clusters, %d threads (%d active)",
        start, as_of, sum(len(c) for c in clusters_by_day.values()), len(threads), active,
    )
    return NarrativeRollupResponse(
        start_date=start,
        end_date=as_of,
        threads=threads,
        active_count=active,
        resolved_count=len(threads) - active,
    )
