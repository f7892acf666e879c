"""Daily prose briefing from raw headlines.

Independent of the Reader/Analyst/Strategist chain: it only needs the raw
articles, and its failure never affects the other stages.
"""

import logging
from datetime import date

from market_intel.core.metrics import LLM_FALLBACKS_TOTAL
from market_intel.integrations.llm.base import LLMResponseError, TextGenerator
from market_intel.integrations.llm.generator import request_text
from market_intel.schemas.intelligence import NewsArticle, category_display_name

logger = logging.getLogger("market_intel.briefing")

BRIEFING_TEMPERATURE = 0.8
BRIEFING_MAX_TOKENS = 800
HEADLINES_PER_CATEGORY = 3
MIN_BRIEFING_WORDS = 40


def fallback_briefing(articles_by_category: dict[str, list[NewsArticle]], target_date: date) -> str:
    covered = sorted(
        category_display_name(c) for c, items in articles_by_category.items() if items
    )
    if not covered:
        return f"Market intelligence briefing for {target_date.isoformat()}. No significant news to report today."
    return f"Market intelligence briefing for {target_date.isoformat()}. Coverage today: {', '.join(covered)}."


def build_briefing_prompt(articles_by_category: dict[str, list[NewsArticle]], target_date: date) -> str:
    sections = []
    for category in sorted(articles_by_category):
        items = articles_by_category[category][:HEADLINES_PER_CATEGORY]
        if not items:
            continue
        lines = "\n".join(f"- {a.headline} ({a.ticker})" for a in items)
        sections.append(f"{category_display_name(category)}:\n{lines}")
    return (
        f"Write the market intelligence briefing for {target_date.isoformat()}.\n\n"
        + "\n\n".join(sections) + "\n\n"
        "Requirements: 250-350 words of plain prose, no headings or bullet points. "
        "Open with the most significant story, connect developments across sectors, "
        "and close with what to watch next."
    )


async def generate_daily_briefing(
    articles_by_category: dict[str, list[NewsArticle]],
    target_date: date,
    generator: TextGenerator,
) -> str:
    """Generate the day's briefing; falls back to a templated sentence, never raises."""
    if not any(articles_by_category.values()):
        return fallback_briefing(articles_by_category, target_date)

    try:
        text = await request_text(
            generator,
            build_briefing_prompt(articles_by_category, target_date),
            stage="briefing",
            temperature=BRIEFING_TEMPERATURE,
            max_output_tokens=BRIEFING_MAX_TOKENS,
        )
        text = text.strip()
        if len(text.split()) < MIN_BRIEFING_WORDS:
            raise LLMResponseError(f"Briefing too short ({len(text.split())} words)")
    except Exception as e:
        LLM_FALLBACKS_TOTAL.labels(stage="briefing").inc()
        logger.warning("Briefing fell back to template for %s: %s", target_date, e)
        return fallback_briefing(articles_by_category, target_date)

    logger.info("Briefing generated for %s (%d words)", target_date, len(text.split()))
    return text
