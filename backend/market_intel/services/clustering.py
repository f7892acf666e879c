"""Deterministic same-day article clustering on headline keywords and entities.

Greedy single pass: each article joins the existing cluster it overlaps with
most (at least one shared entity or two shared keywords), otherwise it opens
a new cluster. Singletons are kept so every article belongs to a cluster.
"""

import re
from collections import Counter
from dataclasses import dataclass, field
from datetime import date

from market_intel.schemas.intelligence import EnrichedArticle
from market_intel.schemas.narrative import ArticleCluster

MIN_KEYWORD_LENGTH = 4
MAX_CLUSTER_KEYWORDS = 10
MIN_ENTITY_LINK = 1
MIN_KEYWORD_LINK = 2
TOPIC_KEYWORDS = 3

STOPWORDS = frozenset({
    "about", "after", "again", "against", "ahead", "amid", "analyst", "analysts", "another",
    "because", "before", "being", "below", "between", "could", "during", "every", "first",
    "from", "have", "here", "into", "just", "last", "latest", "like", "make", "makes", "more",
    "most", "much", "news", "next", "only", "over", "said", "says", "should", "since",
    "some", "still", "stock", "stocks", "than", "that", "their", "them", "then", "there",
    "these", "they", "this", "those", "through", "today", "under", "until", "update", "what",
    "when", "where", "which", "while", "will", "with", "would", "week", "year", "years",
    "your", "shares", "report", "reports",
})

_WORD_RE = re.compile(r"[a-z0-9][a-z0-9'\-]*")


def headline_keywords(headline: str) -> list[str]:
    words = (w.strip("'-") for w in _WORD_RE.findall(headline.lower()))
    return [w for w in words if len(w) >= MIN_KEYWORD_LENGTH and w not in STOPWORDS]


@dataclass
class _Group:
    articles: list[EnrichedArticle] = field(default_factory=list)
    keywords: set[str] = field(default_factory=set)
    entities: set[str] = field(default_factory=set)

    def add(self, article: EnrichedArticle, keywords: set[str], entities: set[str]) -> None:
        self.articles.append(article)
        self.keywords |= keywords
        self.entities |= entities


def _topic(keywords: list[str], headline: str) -> str:
    if keywords:
        return "Trends in " + " & ".join(k.capitalize() for k in keywords[:TOPIC_KEYWORDS])
    return headline if len(headline) <= 50 else headline[:47] + "..."


def _build_cluster(group: _Group, cluster_id: str, cluster_date: date) -> ArticleCluster:
    counts: Counter[str] = Counter()
    entities: list[str] = []
    categories: list[str] = []
    for a in group.articles:
        counts.update(set(headline_keywords(a.headline)))
        for e in a.key_entities:
            if e.lower() not in entities:
                entities.append(e.lower())
        if a.category not in categories:
            categories.append(a.category)

    keywords = [w for w, _ in sorted(counts.items(), key=lambda kv: (-kv[1], kv[0]))][:MAX_CLUSTER_KEYWORDS]
    n = len(group.articles)
    return ArticleCluster(
        id=cluster_id,
        date=cluster_date,
        topic=_topic(keywords, group.articles[0].headline),
        keywords=keywords,
        entities=entities,
        categories=categories,
        article_keys=[a.article_key for a in group.articles],
        aggregate_sentiment=round(sum(a.sentiment_score for a in group.articles) / n, 4),
        aggregate_impact=round(sum(a.impact_score for a in group.articles) / n, 2),
        article_count=n,
    )


def cluster_articles(articles: list[EnrichedArticle], cluster_date: date) -> list[ArticleCluster]:
    """Group one day's articles into clusters, most impactful first."""
    groups: list[_Group] = []
    for article in articles:
        keywords = set(headline_keywords(article.headline))
        entities = {e.lower() for e in article.key_entities}

        best: _Group | None = None
        best_score = (0, 0)
        for group in groups:
            entity_overlap = len(entities & group.entities)
            keyword_overlap = len(keywords & group.keywords)
            if entity_overlap < MIN_ENTITY_LINK and keyword_overlap < MIN_KEYWORD_LINK:
                continue
            score = (entity_overlap, keyword_overlap)
            if best is None or score > best_score:
                best, best_score = group, score

        if best is None:
            best = _Group()
            groups.append(best)
        best.add(article, keywords, entities)

    # Stable sort keeps creation order among equal impacts
    built = [_build_cluster(g, "", cluster_date) for g in groups]
    built.sort(key=lambda c: c.aggregate_impact, reverse=True)
    stamp = cluster_date.strftime("%Y%m%d")
    for i, cluster in enumerate(built):
        cluster.id = f"cluster_{stamp}_{i:02d}"
    return built
